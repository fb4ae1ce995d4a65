"""Storage repository implementations."""
