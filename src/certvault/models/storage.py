"""
Storage domain models.

Attributes follow the vocabulary of the certificate manager consuming the
storage: keys, key metadata and authentication credentials.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

CredentialMechanism = Literal["static", "approle"]


@dataclass(frozen=True)
class KeyInfo:
    """
    Metadata about a stored key.

    Attributes:
        key: Logical key
        modified: Creation time of the current value
        size: Size of the value in bytes
        is_terminal: Always True; the backend has no directory entries
    """

    key: str
    modified: datetime | None
    size: int
    is_terminal: bool = True


@dataclass(frozen=True)
class Credential:
    """
    Authentication credential used for backend calls.

    Credentials are immutable; renewal replaces the whole object.

    Attributes:
        token: Bearer token sent as X-Vault-Token
        mechanism: "static" for pre-provisioned tokens, "approle" for tokens
                   obtained by logging in
        expires_at: Expiration instant for dynamic tokens, None for static
    """

    token: str
    mechanism: CredentialMechanism
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return True when a dynamic credential's lease has elapsed."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at
