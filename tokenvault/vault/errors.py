"""
Vault error taxonomy.

    VaultError
    ├── ValidationError   — missing/empty input; never retried (client error)
    └── StorageError      — backing store failed or timed out; see .retryable

Absence of a record is never an error: verify/check return False and
delete is a no-op.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all vault errors."""


class ValidationError(VaultError, ValueError):
    """A required field is missing, empty, or malformed."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class StorageError(VaultError):
    """The backing store call failed. No partial write was persisted."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable
