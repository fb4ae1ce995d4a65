"""
Local file-based storage repository implementation.

Stores values in a local directory structure:
    {base_dir}/
        storage/
            {key}
            {key}.lock

Directories play the role of groups and files the role of leaf keys.
Lock files hold their expiration as an RFC 3339 timestamp.

For development and tests; processes share locks only when they share the
directory.
"""

import os
import uuid
from asyncio import Event
from datetime import UTC, datetime, timedelta
from pathlib import Path

from loguru import logger

from certvault.exceptions import KeyNotFoundError, LockContentionError
from certvault.infrastructure.locking import DistributedLock
from certvault.infrastructure.repositories.storage_repository import (
    LockRecordStore,
    StorageRepository,
)
from certvault.models.config import DEFAULT_LOCK_POLLING_INTERVAL, DEFAULT_LOCK_TIMEOUT
from certvault.models.storage import KeyInfo
from certvault.utils.timeutils import format_timestamp, parse_timestamp

STALE_LOCK = datetime.min.replace(tzinfo=UTC)


class LocalStorageRepository(StorageRepository, LockRecordStore):
    """
    File-based storage for local development.

    Keys map to files below the storage directory.
    """

    def __init__(
        self,
        base_dir: str = "./.local_infrastructure",
        lock_timeout: timedelta = DEFAULT_LOCK_TIMEOUT,
        lock_polling_interval: timedelta = DEFAULT_LOCK_POLLING_INTERVAL,
    ):
        """
        Initialize local storage repository.

        Args:
            base_dir: Base directory for file storage
            lock_timeout: Lifetime of a lock file
            lock_polling_interval: Wait between checks of a held lock
        """
        self.base_dir = Path(base_dir)
        self.storage_dir = self.base_dir / "storage"

        # Create directory if it doesn't exist
        self.storage_dir.mkdir(parents=True, exist_ok=True)

        self.locks = DistributedLock(
            self, lock_timeout=lock_timeout, polling_interval=lock_polling_interval
        )

        logger.info(f"Initialized LocalStorageRepository at {self.base_dir}")

    def _file_path(self, key: str) -> Path:
        """
        Get path to storage file.

        Handles nested keys by creating subdirectories.
        """
        return self.storage_dir / key.strip("/")

    async def store(self, key: str, value: bytes) -> None:
        """Write value to local storage."""
        file_path = self._file_path(key)

        # Create parent directories if needed
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_path.write_bytes(value)

        logger.debug(f"Stored file: {key} ({len(value)} bytes)")

    async def load(self, key: str) -> bytes:
        """Read value from local storage."""
        file_path = self._file_path(key)

        if not file_path.is_file():
            raise KeyNotFoundError(key)

        return file_path.read_bytes()

    async def delete(self, key: str) -> None:
        """Delete file from local storage."""
        file_path = self._file_path(key)

        if not file_path.is_file():
            raise KeyNotFoundError(key)

        file_path.unlink()
        logger.debug(f"Deleted file: {key}")

    async def exists(self, key: str) -> bool:
        """Check if a non-empty file exists."""
        file_path = self._file_path(key)
        try:
            return file_path.is_file() and file_path.stat().st_size > 0
        except OSError:
            return False

    async def list(self, prefix: str, recursive: bool = False) -> list[str]:
        """List files below a directory, depth-first in name order."""
        directory = self._file_path(prefix)

        if not directory.is_dir() or not any(directory.iterdir()):
            raise KeyNotFoundError(prefix)

        base = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
        items: list[str] = []
        pending = [(base, iter(sorted(os.scandir(directory), key=lambda e: e.name)))]
        while pending:
            group, remaining = pending[-1]
            entry = next(remaining, None)
            if entry is None:
                pending.pop()
                continue

            if entry.is_dir():
                if recursive:
                    children = sorted(os.scandir(entry.path), key=lambda e: e.name)
                    pending.append((f"{group}{entry.name}/", iter(children)))
            else:
                items.append(f"{group}{entry.name}")

        return items

    async def stat(self, key: str) -> KeyInfo:
        """Size and modification time of a file."""
        file_path = self._file_path(key)

        if not file_path.is_file():
            raise KeyNotFoundError(key)

        info = file_path.stat()
        return KeyInfo(
            key=key,
            modified=datetime.fromtimestamp(info.st_mtime, tz=UTC),
            size=info.st_size,
            is_terminal=True,
        )

    async def lock(
        self, key: str, cancel: Event | None = None, timeout: float | None = None
    ) -> None:
        """Acquire the lock file ``{key}.lock``."""
        await self.locks.acquire(key, cancel=cancel, timeout=timeout)

    async def unlock(self, key: str) -> None:
        """Remove the lock file ``{key}.lock``."""
        await self.locks.release(key)

    async def read_lock(self, lock_key: str) -> datetime | None:
        file_path = self._file_path(lock_key)

        try:
            content = file_path.read_text().strip()
        except FileNotFoundError:
            return None

        try:
            return parse_timestamp(content) or STALE_LOCK
        except ValueError:
            logger.warning(f"Unreadable lock file {file_path}, treating it as stale")
            return STALE_LOCK

    async def write_lock(self, lock_key: str, expiration: datetime) -> None:
        file_path = self._file_path(lock_key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write aside, then hard-link into place: the link fails if another
        # process created the lock first, and readers never see a partial file
        staging = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}")
        staging.write_text(format_timestamp(expiration))
        try:
            os.link(staging, file_path)
        except FileExistsError as e:
            raise LockContentionError(lock_key) from e
        finally:
            staging.unlink()

    async def delete_lock(self, lock_key: str) -> None:
        try:
            self._file_path(lock_key).unlink()
        except FileNotFoundError as e:
            raise KeyNotFoundError(lock_key) from e
