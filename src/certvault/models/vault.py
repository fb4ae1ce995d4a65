"""
Vault HTTP API payload models.

Only the fields the storage reads or writes are modelled; everything else
in Vault's responses is ignored.
"""

import base64
from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
)

from certvault.utils.timeutils import format_timestamp, parse_timestamp


class VaultModel(BaseModel):
    """Base model ignoring unknown fields returned by Vault."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        # Vault sends null for empty objects and lists
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required() and field.default_factory is not None:
                return field.default_factory()
        return value


class ErrorResponse(VaultModel):
    """Error body returned by Vault: ``{"errors": [...]}``."""

    errors: list[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        """Errors joined into a single message."""
        return "; ".join(self.errors)


class AuthInfo(VaultModel):
    """The ``auth`` block of a login response."""

    client_token: str = ""
    accessor: str = ""
    policies: list[str] = Field(default_factory=list)
    lease_duration: int = 0
    renewable: bool = False


class LoginResponse(VaultModel):
    """Successful login response."""

    request_id: str = ""
    auth: AuthInfo | None = None


class ApproleLoginInput(VaultModel):
    """Body of an AppRole login request."""

    role_id: str
    secret_id: str


class CertmagicSecret(VaultModel):
    """
    Value stored for every key.

    Attributes:
        data: Raw value bytes, base64 encoded on the wire
        lock: Lock expiration for ``<key>.lock`` records
    """

    data: bytes | None = None
    lock: datetime | None = None

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_validator("lock", mode="before")
    @classmethod
    def decode_lock(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_serializer("data")
    def encode_data(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @field_serializer("lock")
    def encode_lock(self, value: datetime | None) -> str | None:
        if value is None:
            return None
        return format_timestamp(value)


class SecretData(VaultModel):
    """The secret document; everything lives under the ``certmagic`` field."""

    certmagic: CertmagicSecret = Field(default_factory=CertmagicSecret)


class SecretMetadata(VaultModel):
    """Version metadata of a KV v2 secret."""

    created_time: datetime | None = None
    deletion_time: datetime | None = None
    destroyed: bool = False
    version: int = 0

    @field_validator("created_time", "deletion_time", mode="before")
    @classmethod
    def decode_timestamps(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class SecretEnvelope(VaultModel):
    """``data`` block of a KV v2 read: the secret plus its metadata."""

    data: SecretData | None = None
    metadata: SecretMetadata = Field(default_factory=SecretMetadata)


class SecretResponse(VaultModel):
    """Response of ``GET <secrets>/data/<path>``."""

    data: SecretEnvelope = Field(default_factory=SecretEnvelope)

    @property
    def secret(self) -> CertmagicSecret:
        if self.data.data is None:
            return CertmagicSecret()
        return self.data.data.certmagic

    @property
    def is_destroyed(self) -> bool:
        """True for destroyed or soft-deleted versions."""
        metadata = self.data.metadata
        return metadata.destroyed or metadata.deletion_time is not None


class SecretWriteRequest(VaultModel):
    """Body of ``POST <secrets>/data/<path>``."""

    data: SecretData
    options: dict[str, Any] | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ListData(VaultModel):
    keys: list[str] = Field(default_factory=list)


class ListResponse(VaultModel):
    """Response of ``LIST <secrets>/metadata/<path>``."""

    data: ListData = Field(default_factory=ListData)
