"""Pluggable blob storage with a read-only URL backend."""

from .constants import URLBLOB_VERSION
from .errors import (
    BlobIOError,
    BlobNotFoundError,
    BlobStoreError,
    ConfigurationError,
    UnsupportedOperationError,
)
from .path import BlobPath
from .repository import BlobRepository
from .settings import BlobStoreSettings, RepositorySettings, parse_byte_size
from .storage import (
    BlobContainer,
    BlobMetadata,
    BlobStore,
    BlobStream,
    FsBlobStore,
    URLBlobStore,
    make_blob_store,
)

__version__ = URLBLOB_VERSION

__all__ = [
    "BlobContainer",
    "BlobIOError",
    "BlobMetadata",
    "BlobNotFoundError",
    "BlobPath",
    "BlobRepository",
    "BlobStore",
    "BlobStoreError",
    "BlobStoreSettings",
    "BlobStream",
    "ConfigurationError",
    "FsBlobStore",
    "RepositorySettings",
    "URLBlobStore",
    "UnsupportedOperationError",
    "make_blob_store",
    "parse_byte_size",
]
