"""Read-only URL-based blob store.

Every path segment is resolved as a relative URL against the previous
location, so ``http://example.org/repo/`` + ``["a", "b"]`` composes to
``http://example.org/repo/a/b/`` and blob ``file.dat`` is read from
``http://example.org/repo/a/b/file.dat``. Stored data written by other
backends depends on this composition, so it must not change.
"""

import logging
import os
import re
import stat
import urllib.parse
import urllib.request
from concurrent.futures import Executor
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import requests

from ..errors import (
    BlobIOError,
    BlobNotFoundError,
    ConfigurationError,
    ListingNotSupportedError,
    ReadOnlyError,
)
from ..path import BlobPath
from ..settings import BlobStoreSettings, resolve_store_settings
from .base import BlobData, BlobMetadata
from .stream import BlobStream, open_file_handle

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https", "file")
NOT_FOUND_STATUSES = (404, 410)

# Characters that are never legal in a path component, plus the ones that
# would turn the remainder of the URL into a query or fragment.
_ILLEGAL_COMPONENT_CHARS = re.compile(r'[\x00-\x20\x7f<>"{}|\\^`#?]')

Timeout = Union[None, float, tuple]


# ---- URL composition -------------------------------------------------------

def check_url(url: str) -> urllib.parse.SplitResult:
    """
    Validate an absolute URL.

    Raises:
        ValueError: If the URL is malformed or uses an unsupported scheme
    """
    parts = urllib.parse.urlsplit(url)
    if parts.scheme not in SUPPORTED_SCHEMES:
        raise ValueError(f"unknown protocol: {parts.scheme or '(none)'}")
    if parts.scheme in ("http", "https") and not parts.hostname:
        raise ValueError(f"missing host in {url}")
    if parts.scheme == "file" and parts.netloc not in ("", "localhost"):
        raise ValueError(f"remote file host '{parts.netloc}' not supported")
    # Accessing port validates it
    parts.port
    return parts


def resolve_url(base: str, relative: str) -> str:
    """
    Resolve ``relative`` against ``base`` the way a browser resolves a link.

    Raises:
        ValueError: If ``relative`` is not a legal path component or the
            result is not a valid supported URL
    """
    if not relative:
        raise ValueError("empty path component")
    bad = _ILLEGAL_COMPONENT_CHARS.search(relative)
    if bad:
        raise ValueError(f"illegal character {bad.group()!r} in {relative!r}")

    resolved = urllib.parse.urljoin(base, relative)
    check_url(resolved)
    return resolved


def compose_url(base: str, segments: Iterable[str]) -> str:
    """
    Compose a container URL from a base URL and path segments.

    Each segment is resolved as ``segment + "/"`` against the previous URL.
    An empty segment list yields ``base`` itself.

    Raises:
        ValueError: If any resolution step is malformed
    """
    url = base
    for segment in segments:
        if not segment:
            raise ValueError("empty path segment")
        url = resolve_url(url, segment + "/")
    return url


# ---- Transport -------------------------------------------------------------

def _local_path(parts: urllib.parse.SplitResult) -> Path:
    # Host was checked by check_url
    return Path(urllib.request.url2pathname(parts.path))


class HttpBlobHandle:
    """BlobHandle over a streamed HTTP response."""

    def __init__(self, response: requests.Response, location: str, chunk_size: int):
        self._response = response
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._leftover = b""
        self.location = location

    def read(self, size: int) -> bytes:
        try:
            while not self._leftover:
                chunk = next(self._chunks, None)
                if chunk is None:
                    return b""
                self._leftover = chunk
        except requests.RequestException as e:
            raise BlobIOError(self.location, str(e)) from e

        chunk, self._leftover = self._leftover[:size], self._leftover[size:]
        return chunk

    def close(self) -> None:
        self._response.close()


def open_location(location: str, chunk_size: int, timeout: Timeout = None):
    """
    Open a blob location for streaming. Blocks; run it on an executor.

    Raises:
        BlobNotFoundError: If nothing exists at the location
        BlobIOError: On connection, HTTP or filesystem failures
    """
    parts = urllib.parse.urlsplit(location)
    if parts.scheme == "file":
        return open_file_handle(_local_path(parts), location)

    try:
        response = requests.get(location, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise BlobIOError(location, str(e)) from e

    if response.status_code in NOT_FOUND_STATUSES:
        response.close()
        raise BlobNotFoundError(location)
    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        response.close()
        raise BlobIOError(location, str(e)) from e

    logger.debug("Opened %s (HTTP %s)", location, response.status_code)
    return HttpBlobHandle(response, location, chunk_size)


def check_location(location: str, timeout: Timeout = None) -> bool:
    """
    Check whether a blob exists at a location. Blocks; run it on an executor.

    Raises:
        BlobIOError: On transport failures (not on "not found")
    """
    parts = urllib.parse.urlsplit(location)
    if parts.scheme == "file":
        path = _local_path(parts)
        try:
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise BlobIOError(location, e.strerror or str(e)) from e
        return stat.S_ISREG(st.st_mode)

    try:
        response = requests.head(location, allow_redirects=True, timeout=timeout)
    except requests.RequestException as e:
        raise BlobIOError(location, str(e)) from e

    with response:
        if response.status_code in NOT_FOUND_STATUSES:
            return False
        if response.ok:
            return True
        raise BlobIOError(location, f"HTTP {response.status_code} {response.reason}")


# ---- Store and container ---------------------------------------------------

class URLBlobStore:
    """
    Read-only URL-based blob store.

    The following settings are recognized:

    - buffer_size: size of the read buffer, defaults to 100kb

    The executor is borrowed: the store schedules reads on it but never shuts
    it down.
    """

    def __init__(
        self,
        settings: Union[Mapping[str, Any], BlobStoreSettings, None],
        executor: Executor,
        url: str,
        timeout: Timeout = None,
    ):
        """
        Initialize URL blob store.

        Args:
            settings: Store settings mapping
            executor: Executor for read operations
            url: Base URL
            timeout: Optional requests timeout for HTTP calls

        Raises:
            ConfigurationError: If a setting or the base URL is invalid
        """
        self._settings = resolve_store_settings(settings)
        try:
            check_url(url)
        except ValueError as e:
            raise ConfigurationError(f"malformed URL {url}: {e}", path=url) from e
        self._url = url
        self._executor = executor
        self._timeout = timeout

    def __str__(self) -> str:
        return self._url

    def __repr__(self) -> str:
        return f"URLBlobStore({self._url!r})"

    def path(self) -> str:
        """Base URL."""
        return self._url

    base_path = path

    def buffer_size_in_bytes(self) -> int:
        return self._settings.buffer_size

    def executor(self) -> Executor:
        return self._executor

    @property
    def timeout(self) -> Timeout:
        return self._timeout

    def blob_container(self, path: BlobPath) -> "URLBlobContainer":
        """
        Return a read-only container for ``path``.

        Raises:
            ConfigurationError: If the URL for ``path`` is malformed
        """
        try:
            url = compose_url(self._url, path.segments())
        except ValueError as e:
            raise ConfigurationError(f"malformed URL {path}: {e}", path=path) from e
        return URLBlobContainer(self, path, url)

    def delete(self, path: BlobPath) -> None:
        """Not supported: the URL repository is read only."""
        raise ReadOnlyError("delete")

    def close(self) -> None:
        # nothing to do here, the executor belongs to the caller
        pass


class URLBlobContainer:
    """Read-only container bound to one composed URL."""

    def __init__(self, blob_store: URLBlobStore, path: BlobPath, url: str):
        self._blob_store = blob_store
        self._path = path
        self._url = url

    def __repr__(self) -> str:
        return f"URLBlobContainer({self._url!r})"

    def path(self) -> BlobPath:
        return self._path

    @property
    def url(self) -> str:
        return self._url

    def blob_location(self, blob_name: str) -> str:
        """
        URL a blob is read from.

        Raises:
            ConfigurationError: If ``blob_name`` does not form a valid URL
        """
        try:
            return resolve_url(self._url, blob_name)
        except ValueError as e:
            raise ConfigurationError(
                f"malformed URL for blob '{blob_name}' at {self._path}: {e}",
                path=self._path,
            ) from e

    def read_blob(self, blob_name: str) -> BlobStream:
        """
        Open a stream over a blob.

        The connection is opened and read on the store's executor; this call
        returns immediately. Open and read failures (BlobNotFoundError,
        BlobIOError) are raised by the stream's read methods. No retries.
        """
        location = self.blob_location(blob_name)
        store = self._blob_store
        buffer_size = store.buffer_size_in_bytes()
        timeout = store.timeout

        logger.debug("Scheduling read of %s", location)
        return BlobStream(
            lambda: open_location(location, buffer_size, timeout),
            store.executor(),
            buffer_size,
            location=location,
        )

    def read_blob_fully(self, blob_name: str) -> bytes:
        with self.read_blob(blob_name) as stream:
            return stream.readall()

    def blob_exists(self, blob_name: str) -> bool:
        """
        Check whether a blob exists with a HEAD request or a stat call.

        The check runs on the store's executor and this call blocks until it
        finishes. Never call it from one of that executor's own workers: with
        every worker busy waiting, the check can never be scheduled.

        Raises:
            BlobIOError: On transport failures, or if the executor has shut down
        """
        location = self.blob_location(blob_name)
        store = self._blob_store
        try:
            future = store.executor().submit(check_location, location, store.timeout)
        except RuntimeError as e:
            raise BlobIOError(location, "executor shut down") from e
        return future.result()

    def write_blob(self, blob_name: str, data: BlobData) -> None:
        raise ReadOnlyError("write_blob")

    def delete_blob(self, blob_name: str) -> bool:
        raise ReadOnlyError("delete_blob")

    def delete_blobs_by_prefix(self, blob_name_prefix: str) -> None:
        raise ReadOnlyError("delete_blobs_by_prefix")

    def list_blobs(self) -> Dict[str, BlobMetadata]:
        raise ListingNotSupportedError("list_blobs")

    def list_blobs_by_prefix(self, blob_name_prefix: Optional[str]) -> Dict[str, BlobMetadata]:
        raise ListingNotSupportedError("list_blobs_by_prefix")
