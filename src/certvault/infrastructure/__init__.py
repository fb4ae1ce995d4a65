"""
Infrastructure abstraction layer for certificate storage.

This module provides the storage repository interface and implementations:
- vault: HashiCorp Vault KV v2
- local: File-based storage for development

Providers are selected via the factory pattern.
"""

from certvault.infrastructure.factory import InfrastructureFactory

__all__ = ["InfrastructureFactory"]
