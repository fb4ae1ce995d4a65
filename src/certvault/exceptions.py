"""certvault exception hierarchy.

Every storage failure derives from StorageError so callers can catch all of
them with a single except clause. Network failures are not wrapped: they
surface as ``httpx.TransportError`` exactly as the HTTP client raised them.

Usage:
    from certvault.exceptions import KeyNotFoundError, BackendError

    try:
        value = await storage.load("staging/example.com")
    except KeyNotFoundError:
        value = await issue_certificate()
    except BackendError as e:
        logger.error(f"Vault refused the read ({e.status_code}): {e.message}")
"""


class StorageError(Exception):
    """Base exception for all storage errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(StorageError):
    """Invalid or unsupported storage configuration."""

    pass


class KeyNotFoundError(StorageError, FileNotFoundError):
    """Key does not exist.

    Raised when the backend answers 404 for a targeted read or delete, when
    a stored version was destroyed, or when a listing prefix has no entries.
    Subclasses FileNotFoundError so callers can treat the storage like a
    filesystem.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")


class BackendError(StorageError):
    """The backend answered with a non-404 error status.

    Attributes:
        status_code: HTTP status of the response
        errors: Error strings reported by the backend
    """

    def __init__(
        self, message: str, status_code: int | None = None, errors: list[str] | None = None
    ) -> None:
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message or f"Backend returned status {status_code}")


class InvalidPayloadError(BackendError):
    """The backend answered, but its body could not be decoded."""

    pass


class LockError(StorageError):
    """Base class for lock-related errors."""

    pass


class LockContentionError(LockError):
    """Another caller created the lock record first."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lock already held: {key}")


class LockCancelledError(LockError):
    """Waiting for a lock was cancelled by the caller."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Cancelled while waiting for lock: {key}")


class LockTimeoutError(LockCancelledError):
    """Waiting for a lock exceeded the caller's timeout."""

    def __init__(self, key: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(key, f"Timed out after {timeout}s waiting for lock: {key}")
