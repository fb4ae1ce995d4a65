"""
Infrastructure factory for provider selection.

Selects the storage repository implementation based on configuration:
- vault: HashiCorp Vault KV v2 (production)
- local: File-based storage for development

Usage:
    from certvault.infrastructure import InfrastructureFactory
    from certvault.config import get_settings

    # Option 1: From settings
    settings = get_settings()
    factory = InfrastructureFactory.from_settings(settings)

    # Option 2: Manual configuration
    factory = InfrastructureFactory(provider="local", base_dir="/tmp/certs")

    storage = factory.get_storage_repository()
"""

from typing import TYPE_CHECKING, Literal

from loguru import logger

from certvault.exceptions import ConfigurationError
from certvault.infrastructure.repositories import StorageRepository
from certvault.models.config import VaultStorageConfig

if TYPE_CHECKING:
    from certvault.config import Settings

InfrastructureProvider = Literal["vault", "local"]


class InfrastructureFactory:
    """
    Factory for creating storage repository instances.
    """

    def __init__(self, provider: InfrastructureProvider | None = None, **config):
        """
        Initialize infrastructure factory.

        Args:
            provider: Storage provider ("vault", "local").
                      If None, uses "vault" as default.
            **config: Provider-specific configuration options

        Raises:
            ConfigurationError: If provider is not supported

        Example:
            factory = InfrastructureFactory(
                provider="vault",
                vault=VaultStorageConfig(url="https://vault:8200", token="..."),
            )
        """
        if provider is None:
            provider = "vault"

        if provider not in ("vault", "local"):
            raise ConfigurationError(f"Unsupported provider: {provider}")

        self.provider = provider
        self.config = config

        logger.info(f"Initialized InfrastructureFactory with provider: {provider}")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "InfrastructureFactory":
        """
        Create factory from Settings object.

        Args:
            settings: Storage settings from config.py

        Returns:
            InfrastructureFactory configured from settings
        """
        config = {
            "base_dir": settings.local_base_dir,
            "vault": settings.get_vault_storage_config(),
            "lock_timeout": settings.lock_timeout,
            "lock_polling_interval": settings.lock_polling_interval,
        }

        return cls(provider=settings.storage_provider, **config)

    def get_storage_repository(self) -> StorageRepository:
        """
        Get storage repository for configured provider.

        Returns:
            StorageRepository implementation
        """
        if self.provider == "local":
            from certvault.infrastructure.implementations.local import (
                LocalStorageRepository,
            )

            kwargs = {
                name: self.config[name]
                for name in ("lock_timeout", "lock_polling_interval")
                if name in self.config
            }
            base_dir = self.config.get("base_dir", "./.local_infrastructure")
            return LocalStorageRepository(base_dir=base_dir, **kwargs)

        from certvault.infrastructure.implementations.vault import (
            VaultStorageRepository,
        )

        vault_config = self.config.get("vault") or VaultStorageConfig()
        return VaultStorageRepository(vault_config)
