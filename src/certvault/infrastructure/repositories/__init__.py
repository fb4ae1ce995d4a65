"""Abstract repository interfaces for storage operations."""

from certvault.infrastructure.repositories.storage_repository import (
    LockRecordStore,
    StorageRepository,
)

__all__ = [
    "LockRecordStore",
    "StorageRepository",
]
