"""
Application configuration and environment variables.

This module unifies configuration using pydantic-settings.
Variables can come from:
1. .env file
2. System environment variables (have priority)
3. Default values

Naming convention:
- In Python code: snake_case (vault_url)
- In .env or ENV vars: UPPER_CASE (VAULT_URL)
- Pydantic automatically converts between both
"""

from datetime import timedelta
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from certvault.models.config import VaultStorageConfig
from certvault.utils.timeutils import parse_duration


class Settings(BaseSettings):
    """
    Unified storage configuration.

    All variables can be defined in:
    - .env file: VARIABLE_NAME=value
    - Environment variables: export VARIABLE_NAME=value

    Example:
        # In .env or as environment variable:
        STORAGE_PROVIDER=vault
        VAULT_URL=https://vault.example.org:8201
        VAULT_TOKEN=dead-beef
        LOCK_TIMEOUT=15s
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allows using uppercase or lowercase
        extra="ignore",  # Ignores extra variables in .env
    )

    # ============================================================================
    # PROVIDER SETTINGS
    # ============================================================================
    storage_provider: str = Field(
        default="vault",
        description="Storage provider (vault, local)",
    )
    local_base_dir: str = Field(
        default="./.local_infrastructure",
        description="Base directory for the local filesystem provider",
    )

    # ============================================================================
    # VAULT SETTINGS
    # ============================================================================
    vault_url: str = Field(
        default="http://localhost:8200",
        description="Vault address without API version, e.g. https://vault.example.org:8201",
    )
    vault_token: str = Field(
        default="",
        description="Static Vault token. When set, AppRole login is never attempted",
    )
    approle_login_path: str = Field(
        default="auth/approle/login", description="AppRole login endpoint"
    )
    approle_logout_path: str = Field(
        default="auth/token/revoke-self", description="Token revocation endpoint"
    )
    approle_role_id: str = Field(default="", description="AppRole role_id")
    approle_secret_id: str = Field(default="", description="AppRole secret_id")
    secrets_path: str = Field(
        default="secrets", description="Mount path of the KV v2 secrets engine"
    )
    path_prefix: str = Field(
        default="certificates",
        description="Path inside the secrets engine where certificates are placed",
    )
    insecure_skip_verify: bool = Field(
        default=False, description="Ignore TLS errors when talking to Vault"
    )
    request_timeout: float = Field(
        default=30.0, description="HTTP request timeout in seconds"
    )

    # ============================================================================
    # LOCKING SETTINGS
    # ============================================================================
    lock_timeout: timedelta = Field(
        default=timedelta(minutes=5),
        description="Time after which a lock is considered stale (e.g. 5m, 300)",
    )
    lock_polling_interval: timedelta = Field(
        default=timedelta(seconds=5),
        description="Interval between checks of a held lock (e.g. 5s)",
    )
    lock_check_and_set: bool = Field(
        default=True,
        description="Create lock records with check-and-set so only one writer wins",
    )

    # ============================================================================
    # LOGGING SETTINGS
    # ============================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[storage_plugin]} | {name}:{function}:{line} - {message}",  # noqa: E501
        description="Log format",
    )
    logger_name: str = Field(
        default="certvault", description="Value stamped as storage_plugin on logs"
    )
    logger_enqueue: bool = Field(
        default=False, description="Enqueue logs using multiprocessing"
    )

    @field_validator("lock_timeout", "lock_polling_interval", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        """Accept Go-style duration strings such as ``5m`` or ``1h30m``."""
        return parse_duration(value)

    # ============================================================================
    # HELPER METHODS
    # ============================================================================

    def get_vault_storage_config(self) -> VaultStorageConfig:
        """
        Build the configuration object used by the Vault repository.

        Returns:
            VaultStorageConfig: Vault connection, auth and locking options.
        """
        return VaultStorageConfig(
            url=self.vault_url,
            token=self.vault_token,
            approle_login_path=self.approle_login_path,
            approle_logout_path=self.approle_logout_path,
            approle_role_id=self.approle_role_id,
            approle_secret_id=self.approle_secret_id,
            secrets_path=self.secrets_path,
            path_prefix=self.path_prefix,
            insecure_skip_verify=self.insecure_skip_verify,
            request_timeout=self.request_timeout,
            lock_timeout=self.lock_timeout,
            lock_polling_interval=self.lock_polling_interval,
            lock_check_and_set=self.lock_check_and_set,
        )


# ============================================================================
# SINGLETON PATTERN - Global settings instance
# ============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get storage settings (LRU cached).

    This function is cached, so the .env file is only read once.
    To refresh the configuration, clear the cache:
        get_settings.cache_clear()

    Usage:
        from certvault.config import get_settings
        settings = get_settings()
        print(settings.vault_url)

    Returns:
        Settings: Storage configuration instance.
    """
    return Settings()


# Create global instance for use by modules that need settings at import time
settings = get_settings()
