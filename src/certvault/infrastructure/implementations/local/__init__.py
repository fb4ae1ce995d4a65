"""Local file-based infrastructure implementations for development."""

from certvault.infrastructure.implementations.local.storage_repository import (
    LocalStorageRepository,
)

__all__ = [
    "LocalStorageRepository",
]
