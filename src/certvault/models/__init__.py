"""
Models package.

Contains the storage domain models, configuration models and the Vault API
payload models.
"""

from certvault.models.config import VaultStorageConfig
from certvault.models.storage import Credential, KeyInfo

__all__ = [
    "Credential",
    "KeyInfo",
    "VaultStorageConfig",
]
