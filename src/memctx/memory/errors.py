"""Storage error taxonomy.

Every failure in the memory layer surfaces as a ``StoreError`` subclass so
callers can branch on the class instead of parsing messages.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for memory store failures."""

    def __init__(self, message: str, *, op: str = "", kind: str = "", key: str = "") -> None:
        super().__init__(message)
        self.op = op
        self.kind = kind
        self.key = key


class ValidationError(StoreError):
    """A field is missing, too long, or otherwise malformed. Raised before any I/O."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}", op="validate", key=field)
        self.field = field


class AlreadyExistsError(StoreError):
    """Create on a name that already has a file."""


class NotFoundError(StoreError):
    """Read, update or delete on a name that has no file."""


class DecodeError(StoreError):
    """A file is present but does not hold a valid document."""


class StorageIOError(StoreError):
    """Filesystem-level read/write/permission failure."""
