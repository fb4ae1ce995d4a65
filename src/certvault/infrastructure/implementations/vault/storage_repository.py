"""
HashiCorp Vault KV v2 implementation of the storage repository.

Every key is one KV v2 secret:
    {secrets_path}/data/{path_prefix}/{key}       value (read / write)
    {secrets_path}/metadata/{path_prefix}/{key}   versions (delete / list)

The value lives under ``certmagic.data`` (base64 on the wire); lock
records, stored at ``{key}.lock``, keep their expiration under
``certmagic.lock``. Deleting at the metadata path purges every version.

Vault has no directory objects: a LIST returns the names one level below a
path, and names ending in "/" mark nested groups.
"""

from asyncio import Event
from datetime import UTC, datetime
from types import TracebackType
from typing import Self

import httpx

from certvault.core.logging import logger
from certvault.exceptions import (
    BackendError,
    InvalidPayloadError,
    KeyNotFoundError,
    LockContentionError,
    StorageError,
)
from certvault.infrastructure.implementations.vault.client import (
    VaultClient,
    backend_error,
    log_failure,
    parse_error,
)
from certvault.infrastructure.implementations.vault.paths import data_path, metadata_path
from certvault.infrastructure.implementations.vault.session import VaultSession
from certvault.infrastructure.locking import DistributedLock
from certvault.infrastructure.repositories.storage_repository import (
    LockRecordStore,
    StorageRepository,
)
from certvault.models.config import VaultStorageConfig
from certvault.models.storage import KeyInfo
from certvault.models.vault import (
    CertmagicSecret,
    ListResponse,
    SecretData,
    SecretResponse,
    SecretWriteRequest,
)

# Expiration reported for lock records that exist but hold no usable
# timestamp, so the lock manager reclaims them
STALE_LOCK = datetime.min.replace(tzinfo=UTC)

CAS_MISMATCH = "check-and-set parameter did not match"


def join_key(prefix: str, entry: str) -> str:
    """Join a listing prefix and a child entry with a single separator."""
    if not prefix or prefix.endswith("/"):
        return f"{prefix}{entry}"
    return f"{prefix}/{entry}"


class VaultStorageRepository(StorageRepository, LockRecordStore):
    """
    Vault KV v2 implementation of StorageRepository.

    Every operation first asks the session for a valid token (logging in
    with AppRole when needed), then talks to Vault through one shared
    connection pool.

    Usage:
        config = VaultStorageConfig(url="http://localhost:8200", token="dead-beef")
        async with VaultStorageRepository(config) as storage:
            await storage.store("staging/example.com", pem_bytes)
    """

    def __init__(
        self,
        config: VaultStorageConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the Vault storage.

        Args:
            config: Vault connection, auth and locking options
            http_client: Optional preconfigured httpx client
        """
        self.config = config
        self.client = VaultClient(config, http_client)
        self.session = VaultSession(self.client, config)
        self.locks = DistributedLock(
            self,
            lock_timeout=config.lock_timeout,
            polling_interval=config.lock_polling_interval,
        )

        logger.info(
            f"Initialized VaultStorageRepository at {self.client.base_url} "
            f"(secrets_path={config.secrets_path}, path_prefix={config.path_prefix})"
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.logout()
        finally:
            await self.aclose()

    def _data_path(self, key: str) -> str:
        return data_path(self.config.secrets_path, self.config.path_prefix, key)

    def _metadata_path(self, key: str) -> str:
        return metadata_path(self.config.secrets_path, self.config.path_prefix, key)

    # ========================================================================
    # Request helpers
    # ========================================================================

    async def _send(
        self, action: str, method: str, path: str, body: dict | None = None
    ) -> httpx.Response:
        """Send an authenticated request, logging transport failures."""
        url = self.client.url(path)
        token = await self.session.get_token()
        try:
            return await self.client.request(method, path, token, body)
        except httpx.TransportError as e:
            log_failure(action, url, error=e)
            raise

    async def _read(self, key: str, action: str) -> SecretResponse | None:
        """
        Read the secret stored for a key.

        Returns:
            The parsed secret, or None when Vault has no record. A 404 that
            still carries version metadata (a deleted or destroyed version)
            is returned so callers can tell it apart from a missing key.

        Raises:
            BackendError: For non-404 error statuses
        """
        path = self._data_path(key)
        response = await self._send(action, "GET", path)

        if response.status_code == httpx.codes.NOT_FOUND:
            tombstone = self._parse_secret(response, strict=False)
            if tombstone is not None and tombstone.data.metadata.version > 0:
                return tombstone
            return None

        if response.is_error:
            log_failure(action, self.client.url(path), response)
            raise backend_error(response)

        return self._parse_secret(response)

    def _parse_secret(
        self, response: httpx.Response, strict: bool = True
    ) -> SecretResponse | None:
        try:
            return SecretResponse.model_validate(response.json())
        except ValueError as e:
            if not strict:
                return None
            log_failure("decode secret", str(response.url), response)
            raise InvalidPayloadError(
                f"invalid secret payload: {e}", status_code=response.status_code
            ) from e

    async def _write(
        self,
        key: str,
        secret: CertmagicSecret,
        action: str,
        options: dict | None = None,
    ) -> httpx.Response:
        """Write a secret, returning the response whatever its status."""
        request = SecretWriteRequest(data=SecretData(certmagic=secret), options=options)
        return await self._send(action, "POST", self._data_path(key), request.to_json())

    async def _delete(self, key: str, action: str) -> None:
        """Delete every version of a key."""
        path = self._metadata_path(key)
        response = await self._send(action, "DELETE", path)

        if response.status_code == httpx.codes.NOT_FOUND:
            raise KeyNotFoundError(key)

        if response.is_error:
            log_failure(action, self.client.url(path), response)
            raise backend_error(response)

    async def _list_children(self, prefix: str, action: str) -> list[str]:
        """Names one level below a prefix; empty when Vault has none."""
        path = self._metadata_path(prefix)
        response = await self._send(action, "LIST", path)

        if response.status_code == httpx.codes.NOT_FOUND:
            return []

        if response.is_error:
            log_failure(action, self.client.url(path), response)
            raise backend_error(response)

        try:
            return ListResponse.model_validate(response.json()).data.keys
        except ValueError as e:
            log_failure(action, self.client.url(path), response)
            raise BackendError(
                f"invalid list payload: {e}", status_code=response.status_code
            ) from e

    # ========================================================================
    # StorageRepository
    # ========================================================================

    async def store(self, key: str, value: bytes) -> None:
        """Store a value at the key's data path."""
        logger.debug(f"Store() at url {self.client.url(self._data_path(key))}")

        response = await self._write(
            key, CertmagicSecret(data=value), "store certificate"
        )
        if response.is_error:
            url = self.client.url(self._data_path(key))
            log_failure("store certificate", url, response)
            raise backend_error(response)

    async def load(self, key: str) -> bytes:
        """Load a value; destroyed versions count as missing."""
        logger.debug(f"Load() from url {self.client.url(self._data_path(key))}")

        secret = await self._read(key, "load certificate")
        if secret is None or secret.is_destroyed:
            raise KeyNotFoundError(key)

        return secret.secret.data or b""

    async def delete(self, key: str) -> None:
        """Delete a key at its metadata path, purging all versions."""
        logger.debug(f"Delete() at url {self.client.url(self._metadata_path(key))}")

        await self._delete(key, "delete certificate")

    async def exists(self, key: str) -> bool:
        """True only for a successful read of a non-empty value."""
        logger.debug(f"Exists() at url {self.client.url(self._data_path(key))}")

        try:
            secret = await self._read(key, "check certificate")
        except (StorageError, httpx.HTTPError):
            return False

        if secret is None or secret.is_destroyed:
            return False

        return bool(secret.secret.data)

    async def list(self, prefix: str, recursive: bool = False) -> list[str]:
        """
        List leaf keys under a prefix.

        Children are visited depth-first with an explicit stack, so a
        group's keys appear at the group's position among its siblings.
        Group markers (names ending in "/") are never returned.

        Args:
            prefix: Group to list, "" for the root
            recursive: Descend into nested groups

        Returns:
            Leaf keys in Vault's order per level

        Raises:
            KeyNotFoundError: If Vault returns no entries for the prefix
            BackendError: If any LIST fails; partial results are dropped
        """
        logger.debug(
            f"List() at url {self.client.url(self._metadata_path(prefix))}, "
            f"recursive={recursive}"
        )

        entries = await self._list_children(prefix, "list certificates")
        if not entries:
            raise KeyNotFoundError(prefix)

        items: list[str] = []
        pending = [(prefix, iter(entries))]
        while pending:
            group, remaining = pending[-1]
            entry = next(remaining, None)
            if entry is None:
                pending.pop()
                continue

            path = join_key(group, entry)
            if not path.endswith("/"):
                items.append(path)
            elif recursive:
                children = await self._list_children(path, "list certificates")
                pending.append((path, iter(children)))

        return items

    async def stat(self, key: str) -> KeyInfo:
        """Size and creation time of the key's current value."""
        logger.debug(f"Stat() at url {self.client.url(self._data_path(key))}")

        secret = await self._read(key, "stat certificate")
        if secret is None or secret.is_destroyed:
            raise KeyNotFoundError(key)

        value = secret.secret.data or b""
        return KeyInfo(
            key=key,
            modified=secret.data.metadata.created_time,
            size=len(value),
            is_terminal=True,
        )

    async def lock(
        self, key: str, cancel: Event | None = None, timeout: float | None = None
    ) -> None:
        """Acquire the lock record ``{key}.lock``."""
        await self.locks.acquire(key, cancel=cancel, timeout=timeout)

    async def unlock(self, key: str) -> None:
        """Delete the lock record ``{key}.lock``."""
        await self.locks.release(key)

    # ========================================================================
    # LockRecordStore
    # ========================================================================

    async def read_lock(self, lock_key: str) -> datetime | None:
        try:
            secret = await self._read(lock_key, "get lock")
        except InvalidPayloadError:
            logger.warning(f"Unreadable lock record {lock_key}, treating it as stale")
            return STALE_LOCK

        if secret is None:
            return None

        expiration = secret.secret.lock
        if secret.is_destroyed or expiration is None:
            # Leftover record; report it stale so it gets purged
            logger.debug(f"Lock record {lock_key} holds no expiration")
            return STALE_LOCK

        return expiration

    async def write_lock(self, lock_key: str, expiration: datetime) -> None:
        # cas=0 only lets the write through if the record does not exist
        options = {"cas": 0} if self.config.lock_check_and_set else None
        response = await self._write(
            lock_key, CertmagicSecret(lock=expiration), "create lock", options
        )

        if response.is_error:
            errors = parse_error(response)
            rejected = response.status_code == httpx.codes.BAD_REQUEST
            if rejected and CAS_MISMATCH in errors.message:
                raise LockContentionError(lock_key)
            log_failure("create lock", self.client.url(self._data_path(lock_key)), response)
            raise backend_error(response)

    async def delete_lock(self, lock_key: str) -> None:
        await self._delete(lock_key, "remove lock")

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    async def logout(self) -> None:
        """Revoke the AppRole token, if one was obtained."""
        await self.session.logout()

    async def aclose(self) -> None:
        """Close the HTTP connection pool."""
        await self.client.aclose()
