"""
Vault authentication session.

Resolves the token sent with every storage request:

1. A static token, when configured, is always used; login is never attempted.
2. Otherwise a cached AppRole token is reused until its lease elapses.
3. Otherwise the session logs in with role_id/secret_id and caches the new
   token together with its expiration (now + lease_duration).

Expiry is detected lazily on the next call; there is no background renewal,
so a single request outliving the lease is not renewed mid-flight.
"""

from datetime import timedelta

import httpx

from certvault.core.logging import logger
from certvault.exceptions import BackendError
from certvault.infrastructure.implementations.vault.client import (
    VaultClient,
    backend_error,
    log_failure,
)
from certvault.models.config import VaultStorageConfig
from certvault.models.storage import Credential
from certvault.models.vault import ApproleLoginInput, LoginResponse
from certvault.utils.timeutils import utcnow


class VaultSession:
    """
    Owns the credential used for Vault calls.

    The cached Credential is immutable and replaced with a single reference
    assignment, so concurrent readers always see either the old or the new
    credential.
    """

    def __init__(self, client: VaultClient, config: VaultStorageConfig):
        """
        Initialize the session.

        Args:
            client: Vault HTTP client
            config: Vault storage configuration (token and AppRole settings)
        """
        self.client = client
        self.login_path = config.approle_login_path
        self.logout_path = config.approle_logout_path
        self._role_id = config.approle_role_id
        self._secret_id = config.approle_secret_id
        self._credential: Credential | None = None

        if config.token:
            self._credential = Credential(token=config.token, mechanism="static")

    @property
    def credential(self) -> Credential | None:
        """Currently cached credential, if any."""
        return self._credential

    @property
    def expired(self) -> bool:
        """True when no usable credential is cached."""
        credential = self._credential
        return credential is None or credential.is_expired(utcnow())

    async def get_token(self) -> str:
        """
        Return a valid token, logging in when needed.

        Returns:
            The token, or an empty string when login failed. The request made
            with an empty token then fails with Vault's permission error.
        """
        credential = self._credential

        if credential is not None and credential.mechanism == "static":
            logger.debug("Using static Vault token for auth")
            return credential.token

        if credential is not None:
            now = utcnow()
            if not credential.is_expired(now):
                logger.debug("Using approle client token for auth")
                return credential.token
            logger.warning(
                f"Approle client token expired {now - credential.expires_at} ago"
            )

        try:
            credential = await self.login()
        except (BackendError, httpx.TransportError):
            return ""

        logger.debug("Using newly created approle token for auth")
        return credential.token

    async def login(self) -> Credential:
        """
        Log in with AppRole credentials and cache the resulting token.

        Returns:
            The new credential

        Raises:
            BackendError: If Vault rejects the login
            httpx.TransportError: If Vault cannot be reached
        """
        logger.info("Logging in to vault using approle credentials")
        url = self.client.url(self.login_path)
        body = ApproleLoginInput(role_id=self._role_id, secret_id=self._secret_id)

        try:
            response = await self.client.post(self.login_path, None, body.model_dump())
        except httpx.TransportError as e:
            log_failure("log in to vault using approle credentials", url, error=e)
            raise

        if response.is_error:
            log_failure("log in to vault using approle credentials", url, response)
            raise backend_error(response)

        try:
            result = LoginResponse.model_validate(response.json())
        except ValueError:
            result = LoginResponse()

        if result.auth is None or not result.auth.client_token:
            log_failure("log in to vault using approle credentials", url, response)
            raise BackendError(
                "login response carried no client token",
                status_code=response.status_code,
            )

        # A zero lease means the token does not expire
        expires_at = None
        if result.auth.lease_duration > 0:
            expires_at = utcnow() + timedelta(seconds=result.auth.lease_duration)

        credential = Credential(
            token=result.auth.client_token,
            mechanism="approle",
            expires_at=expires_at,
        )
        self._credential = credential
        return credential

    async def logout(self) -> None:
        """
        Revoke the cached AppRole token.

        A no-op when no dynamic credential is cached. The cached credential
        is only dropped once Vault confirmed the revocation.

        Raises:
            BackendError: If Vault rejects the revocation
            httpx.TransportError: If Vault cannot be reached
        """
        credential = self._credential
        if credential is None or credential.mechanism != "approle":
            return

        if credential.is_expired(utcnow()):
            # Vault already invalidated it
            if self._credential is credential:
                self._credential = None
            return

        url = self.client.url(self.logout_path)
        try:
            response = await self.client.post(self.logout_path, credential.token, {})
        except httpx.TransportError as e:
            log_failure("log out of vault", url, error=e)
            raise

        if response.is_error:
            log_failure("log out of vault", url, response)
            raise backend_error(response)

        logger.info("Revoked approle client token")
        if self._credential is credential:
            self._credential = None
