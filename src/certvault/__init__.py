"""
certvault: certificate manager storage backed by HashiCorp Vault KV v2.

Usage:
    from certvault import VaultStorageConfig, VaultStorageRepository

    config = VaultStorageConfig(url="http://localhost:8200", token="dead-beef")
    async with VaultStorageRepository(config) as storage:
        await storage.lock("example.com")
        try:
            await storage.store("example.com", pem_bytes)
        finally:
            await storage.unlock("example.com")
"""

from certvault.exceptions import (
    BackendError,
    KeyNotFoundError,
    LockCancelledError,
    LockTimeoutError,
    StorageError,
)
from certvault.infrastructure.implementations.vault import VaultStorageRepository
from certvault.infrastructure.repositories import StorageRepository
from certvault.models import KeyInfo, VaultStorageConfig

__all__ = [
    "BackendError",
    "KeyInfo",
    "KeyNotFoundError",
    "LockCancelledError",
    "LockTimeoutError",
    "StorageError",
    "StorageRepository",
    "VaultStorageConfig",
    "VaultStorageRepository",
]
