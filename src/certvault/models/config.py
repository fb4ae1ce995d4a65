"""
Configuration models for storage providers.

These models are the plain configuration objects repositories are
constructed from. Defaults are resolved at construction time so a
repository never has to check for unset values.
"""

from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from certvault.utils.timeutils import parse_duration

DEFAULT_LOCK_TIMEOUT = timedelta(minutes=5)
DEFAULT_LOCK_POLLING_INTERVAL = timedelta(seconds=5)


class VaultStorageConfig(BaseModel):
    """
    Vault KV v2 storage configuration.

    Attributes:
        url: Vault address without API version or paths.
        token: Static token. When set it is always used and AppRole login is
               never attempted; its lifecycle is up to the caller.
        approle_login_path: Login endpoint relative to ``/v1/``.
        approle_logout_path: Revocation endpoint relative to ``/v1/``.
        approle_role_id: AppRole role_id used for dynamic login.
        approle_secret_id: AppRole secret_id used for dynamic login.
        secrets_path: Mount path of the KV v2 secrets engine.
        path_prefix: Path inside the engine where keys are placed.
        insecure_skip_verify: Ignore TLS errors when talking to Vault.
        request_timeout: HTTP timeout in seconds.
        lock_timeout: Lifetime of a lock record before it is stale.
        lock_polling_interval: Wait between checks of a held lock.
        lock_check_and_set: Create lock records with ``cas=0``.

    Example:
        With url=https://vault.example.org:8201, secrets_path=secrets/production
        and path_prefix=engineering/certmagic/certificates, keys end up at:
            data:     /v1/secrets/production/data/engineering/certmagic/certificates/<key>
            metadata: /v1/secrets/production/metadata/engineering/certmagic/certificates/<key>
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(default="http://localhost:8200", description="Vault address")
    token: str = Field(default="", description="Static Vault token")
    approle_login_path: str = Field(default="auth/approle/login")
    approle_logout_path: str = Field(default="auth/token/revoke-self")
    approle_role_id: str = Field(default="")
    approle_secret_id: str = Field(default="")
    secrets_path: str = Field(default="secrets")
    path_prefix: str = Field(default="certificates")
    insecure_skip_verify: bool = Field(default=False)
    request_timeout: float = Field(default=30.0, gt=0)
    lock_timeout: timedelta = Field(default=DEFAULT_LOCK_TIMEOUT)
    lock_polling_interval: timedelta = Field(default=DEFAULT_LOCK_POLLING_INTERVAL)
    lock_check_and_set: bool = Field(default=True)

    @field_validator("lock_timeout", "lock_polling_interval", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        """Accept Go-style duration strings such as ``5m`` or ``250ms``."""
        return parse_duration(value)

    @field_validator("approle_login_path", "approle_logout_path", mode="after")
    @classmethod
    def default_auth_paths(cls, value: str, info: ValidationInfo) -> str:
        """Empty auth paths fall back to the standard AppRole endpoints."""
        if value:
            return value
        if info.field_name == "approle_login_path":
            return "auth/approle/login"
        return "auth/token/revoke-self"

    @property
    def base_url(self) -> str:
        """Vault API base URL, e.g. ``https://vault.example.org:8201/v1/``."""
        return f"{self.url.rstrip('/')}/v1/"
