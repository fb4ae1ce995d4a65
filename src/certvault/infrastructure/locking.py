"""
Cooperative distributed lock built on lock records.

A lock for ``key`` is a record stored at ``key.lock`` holding a single
expiration timestamp. Per key the lock is in one of three states:

- FREE: no record. The caller creates one and owns the lock.
- HELD-EXPIRED: the record's expiration is in the past. The caller deletes
  the stale record, then creates its own.
- HELD-FRESH: the record is still valid. The caller waits one polling
  interval (or until cancelled) and checks again.

Records carry no owner, so any caller may reclaim an expired lock and a
lock that is never released blocks others for at most the lock timeout.

Creation uses the store's exclusive-create primitive when it has one, so
two callers that both saw FREE cannot both win. Reclaiming an expired lock
is still a delete followed by a create: a slow reclaimer can delete a
fresh record written by a faster one in between.
"""

import asyncio
from datetime import timedelta

from certvault.core.logging import logger
from certvault.exceptions import (
    KeyNotFoundError,
    LockCancelledError,
    LockContentionError,
    LockTimeoutError,
)
from certvault.infrastructure.repositories.storage_repository import LockRecordStore
from certvault.models.config import DEFAULT_LOCK_POLLING_INTERVAL, DEFAULT_LOCK_TIMEOUT
from certvault.utils.timeutils import utcnow

LOCK_SUFFIX = ".lock"


class DistributedLock:
    """
    Polling lock manager layered on a repository's lock record primitives.
    """

    def __init__(
        self,
        store: LockRecordStore,
        lock_timeout: timedelta = DEFAULT_LOCK_TIMEOUT,
        polling_interval: timedelta = DEFAULT_LOCK_POLLING_INTERVAL,
    ):
        """
        Initialize the lock manager.

        Args:
            store: Repository providing read/write/delete of lock records
            lock_timeout: Lifetime of a lock record
            polling_interval: Wait between checks of a held lock
        """
        self.store = store
        self.lock_timeout = lock_timeout
        self.polling_interval = polling_interval

    @staticmethod
    def lock_key(key: str) -> str:
        """Key of the record guarding ``key``."""
        return f"{key}{LOCK_SUFFIX}"

    async def acquire(
        self,
        key: str,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Acquire the lock for a key.

        Args:
            key: Logical key
            cancel: Event that aborts the wait when set
            timeout: Maximum seconds to wait for a held lock

        Raises:
            LockCancelledError: If cancel is set while the lock is held
            LockTimeoutError: If timeout elapses while the lock is held
        """
        record_key = self.lock_key(key)
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            expiration = await self.store.read_lock(record_key)

            if expiration is not None and utcnow() > expiration:
                logger.info(f"Reclaiming expired lock {record_key} (expired {expiration})")
                try:
                    await self.release(key)
                except KeyNotFoundError:
                    logger.debug(f"Expired lock {record_key} already reclaimed")
                expiration = None

            if expiration is None:
                try:
                    await self.store.write_lock(record_key, utcnow() + self.lock_timeout)
                except LockContentionError:
                    logger.debug(f"Lost race for lock {record_key}, waiting")
                    await self._wait(key, cancel, deadline, timeout)
                    continue
                logger.debug(f"Acquired lock {record_key}")
                return

            logger.debug(f"Lock {record_key} held until {expiration}, waiting")
            await self._wait(key, cancel, deadline, timeout)

    async def release(self, key: str) -> None:
        """
        Release the lock for a key.

        Raises:
            KeyNotFoundError: If no lock record exists
        """
        await self.store.delete_lock(self.lock_key(key))

    async def _wait(
        self,
        key: str,
        cancel: asyncio.Event | None,
        deadline: float | None,
        timeout: float | None,
    ) -> None:
        """Sleep one polling interval, returning early with an error on cancel."""
        if cancel is not None and cancel.is_set():
            raise LockCancelledError(key)

        loop = asyncio.get_running_loop()
        delay = self.polling_interval.total_seconds()
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise LockTimeoutError(key, timeout)
            delay = min(delay, remaining)

        if cancel is None:
            await asyncio.sleep(delay)
        else:
            try:
                await asyncio.wait_for(cancel.wait(), timeout=delay)
            except TimeoutError:
                pass
            else:
                raise LockCancelledError(key)

        if deadline is not None and loop.time() >= deadline:
            raise LockTimeoutError(key, timeout)