"""Storage package: blob store protocols and backends."""

from .base import BlobContainer, BlobMetadata, BlobStore
from .factory import make_blob_store
from .fs import FsBlobContainer, FsBlobStore
from .stream import BlobStream
from .url import URLBlobContainer, URLBlobStore, compose_url

__all__ = [
    "BlobContainer",
    "BlobMetadata",
    "BlobStore",
    "BlobStream",
    "FsBlobContainer",
    "FsBlobStore",
    "URLBlobContainer",
    "URLBlobStore",
    "compose_url",
    "make_blob_store",
]
