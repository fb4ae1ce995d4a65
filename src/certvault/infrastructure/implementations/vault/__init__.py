"""HashiCorp Vault infrastructure implementations."""

from certvault.infrastructure.implementations.vault.session import VaultSession
from certvault.infrastructure.implementations.vault.storage_repository import (
    VaultStorageRepository,
)

__all__ = [
    "VaultSession",
    "VaultStorageRepository",
]
