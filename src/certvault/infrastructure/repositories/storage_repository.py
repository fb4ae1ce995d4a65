"""
Abstract interface for certificate manager storage.

Presents a filesystem-like key/value store:
- Keys are slash-delimited paths
- Listings can be shallow or recursive
- Keys can be locked across processes sharing the same backend
"""

from abc import ABC, abstractmethod
from asyncio import Event
from datetime import datetime

from certvault.models.storage import KeyInfo


class StorageRepository(ABC):
    """
    Abstract interface for storage operations.

    Implementations must provide:
    - Value storage and retrieval by key
    - Existence and metadata queries
    - Shallow and recursive listing
    - Cooperative locking built on lock records

    Missing keys are reported with KeyNotFoundError.
    """

    @abstractmethod
    async def store(self, key: str, value: bytes) -> None:
        """
        Store a value.

        Args:
            key: Logical key
            value: Value bytes

        Raises:
            BackendError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def load(self, key: str) -> bytes:
        """
        Load a value.

        Args:
            key: Logical key

        Returns:
            Value bytes, possibly empty

        Raises:
            KeyNotFoundError: If the key does not exist
            BackendError: If the backend rejects the read
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete a key and all of its versions.

        Args:
            key: Logical key

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check if a key holds a non-empty value.

        Every failure is reported as False; use load() or stat() to tell a
        missing key from an unreachable backend.

        Args:
            key: Logical key

        Returns:
            True if the key exists and its value is not empty
        """
        pass

    @abstractmethod
    async def list(self, prefix: str, recursive: bool = False) -> list[str]:
        """
        List keys under a prefix.

        Args:
            prefix: Group to list, "" for the root
            recursive: Descend into nested groups

        Returns:
            Leaf keys in depth-first order; group markers are never included

        Raises:
            KeyNotFoundError: If nothing exists under the prefix
        """
        pass

    @abstractmethod
    async def stat(self, key: str) -> KeyInfo:
        """
        Get key metadata.

        Args:
            key: Logical key

        Returns:
            KeyInfo with size and modification time

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    async def lock(
        self, key: str, cancel: Event | None = None, timeout: float | None = None
    ) -> None:
        """
        Acquire the lock for a key, waiting while another caller holds it.

        Args:
            key: Logical key to lock
            cancel: Event that aborts the wait when set
            timeout: Maximum seconds to wait

        Raises:
            LockCancelledError: If cancel was set while waiting
            LockTimeoutError: If timeout elapsed while waiting
        """
        pass

    @abstractmethod
    async def unlock(self, key: str) -> None:
        """
        Release the lock for a key.

        Args:
            key: Logical key to unlock

        Raises:
            KeyNotFoundError: If the key is not locked
        """
        pass


class LockRecordStore(ABC):
    """
    Lock record primitives a repository offers to DistributedLock.

    Lock keys are full record keys (``<key>.lock``).
    """

    @abstractmethod
    async def read_lock(self, lock_key: str) -> datetime | None:
        """
        Read a lock record.

        Returns:
            Lock expiration, or None when no lock record exists
        """
        pass

    @abstractmethod
    async def write_lock(self, lock_key: str, expiration: datetime) -> None:
        """
        Create a lock record.

        Raises:
            LockContentionError: If a record appeared since it was last read
        """
        pass

    @abstractmethod
    async def delete_lock(self, lock_key: str) -> None:
        """
        Delete a lock record.

        Raises:
            KeyNotFoundError: If no record exists
        """
        pass
