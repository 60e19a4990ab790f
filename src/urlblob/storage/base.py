"""Base protocols for blob storage implementations."""

from dataclasses import dataclass
from typing import BinaryIO, Dict, Protocol, Union, runtime_checkable

from ..path import BlobPath
from .stream import BlobStream

BlobData = Union[bytes, bytearray, memoryview, BinaryIO]


@dataclass(frozen=True)
class BlobMetadata:
    """Name and size of a stored blob."""
    name: str
    length: int


@runtime_checkable
class BlobContainer(Protocol):
    """
    Per-blob operations at one composed location.

    A container is bound to its location for its whole lifetime and carries
    no state between calls. Backends that cannot support an operation must
    still implement it and raise UnsupportedOperationError.
    """

    def path(self) -> BlobPath:
        """Path this container was created for."""
        ...

    def blob_exists(self, blob_name: str) -> bool:
        """
        Check whether a blob exists.

        Returns:
            False if the backend reports "not found"

        Raises:
            BlobIOError: For transport-level failures
        """
        ...

    def read_blob(self, blob_name: str) -> BlobStream:
        """
        Open a lazily-read stream over a blob.

        Raises:
            BlobIOError: From the stream, if the blob cannot be opened or read
        """
        ...

    def read_blob_fully(self, blob_name: str) -> bytes:
        """Read a whole blob into memory."""
        ...

    def write_blob(self, blob_name: str, data: BlobData) -> None:
        """Store a blob, replacing any existing one."""
        ...

    def delete_blob(self, blob_name: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if a blob was removed
        """
        ...

    def delete_blobs_by_prefix(self, blob_name_prefix: str) -> None:
        ...

    def list_blobs(self) -> Dict[str, BlobMetadata]:
        ...

    def list_blobs_by_prefix(self, blob_name_prefix: str) -> Dict[str, BlobMetadata]:
        ...


@runtime_checkable
class BlobStore(Protocol):
    """
    Protocol for blob store backends.

    A store is a factory of containers. It borrows the executor used for
    blocking I/O and never shuts it down.
    """

    def blob_container(self, path: BlobPath) -> BlobContainer:
        """
        Return a container rooted at the location composed from ``path``.

        Raises:
            ConfigurationError: If the location cannot be composed
        """
        ...

    def delete(self, path: BlobPath) -> None:
        """Delete everything stored under ``path``."""
        ...

    def close(self) -> None:
        """Release resources owned by the store."""
        ...
