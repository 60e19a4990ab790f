"""Custom exceptions for urlblob.

This module defines typed exceptions for the blob store backends so callers
can tell configuration mistakes, read-only violations and I/O failures apart.
"""

from typing import Optional


class BlobStoreError(RuntimeError):
    """Base class for all blob store errors."""
    pass


# Configuration Errors
class ConfigurationError(BlobStoreError):
    """Malformed base location, path segment, blob name or setting."""

    def __init__(self, message: str, path: Optional[object] = None):
        self.path = path
        super().__init__(message)


# Contract Errors
class UnsupportedOperationError(BlobStoreError, NotImplementedError):
    """Operation not available on this backend (e.g. writes on a read-only store)."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(f"{operation}: {reason}")


class ReadOnlyError(UnsupportedOperationError):
    """Write or delete attempted against a read-only repository."""

    def __init__(self, operation: str):
        super().__init__(operation, "URL repository is read only")


class ListingNotSupportedError(UnsupportedOperationError):
    """Backend has no primitive for enumerating blobs."""

    def __init__(self, operation: str):
        super().__init__(operation, "URL repository doesn't support listing blobs")


# I/O Errors
class BlobIOError(BlobStoreError, OSError):
    """Failure opening, reading or writing a blob."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Blob I/O failed at {location}: {reason}")

    def __str__(self) -> str:
        return self.args[0]


class BlobNotFoundError(BlobIOError, FileNotFoundError):
    """Blob does not exist at the requested location."""

    def __init__(self, location: str):
        super().__init__(location, "not found")
