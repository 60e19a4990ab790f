"""Filesystem blob storage implementation.

Blobs are stored as plain files: ``location/<segment>/.../<blob_name>``.
That layout is what a ``file://`` URL store rooted at ``location`` resolves
to, so data written here can be served read-only through URLBlobStore.
"""

import contextlib
import logging
import os
import shutil
import tempfile
from concurrent.futures import Executor
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import BlobIOError, ConfigurationError
from ..path import BlobPath
from ..settings import BlobStoreSettings, resolve_store_settings
from .base import BlobData, BlobMetadata
from .stream import BlobStream, open_file_handle

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".urlblob-"
_TMP_SUFFIX = ".tmp"


def _check_name(name: str) -> Optional[str]:
    """Return why ``name`` can't be used as a single path component."""
    if not name:
        return "empty name"
    if name in (".", ".."):
        return f"relative name '{name}'"
    if "/" in name or "\\" in name or "\x00" in name:
        return f"separator in '{name}'"
    return None


def _is_temp(name: str) -> bool:
    return name.startswith(_TMP_PREFIX) and name.endswith(_TMP_SUFFIX)


def _fsync_dir(path: Path) -> None:
    """Best-effort fsync of a directory entry update."""
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY
        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)


class FsBlobStore:
    """
    Writable blob store on the local filesystem.

    The following settings are recognized:

    - buffer_size: size of the read buffer, defaults to 100kb
    """

    def __init__(
        self,
        settings: Union[Mapping[str, Any], BlobStoreSettings, None],
        executor: Executor,
        location: Union[str, Path],
    ):
        """
        Initialize filesystem store.

        Args:
            settings: Store settings mapping
            executor: Executor for read operations
            location: Base directory, created if missing

        Raises:
            ConfigurationError: If settings are invalid or the base directory
                can't be created
        """
        self._settings = resolve_store_settings(settings)
        self._path = Path(location)
        self._executor = executor
        try:
            self._path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create blob store directory {self._path}: {e}", path=str(self._path)
            ) from e

    def __str__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"FsBlobStore({str(self._path)!r})"

    def path(self) -> Path:
        """Base directory."""
        return self._path

    def buffer_size_in_bytes(self) -> int:
        return self._settings.buffer_size

    def executor(self) -> Executor:
        return self._executor

    def build_path(self, path: BlobPath) -> Path:
        """
        Directory for ``path``.

        Raises:
            ConfigurationError: If a segment is not a single directory name
        """
        directory = self._path
        for segment in path:
            problem = _check_name(segment)
            if problem:
                raise ConfigurationError(f"Invalid path segment in {path}: {problem}", path=path)
            directory = directory / segment
        return directory

    def blob_container(self, path: BlobPath) -> "FsBlobContainer":
        return FsBlobContainer(self, path, self.build_path(path))

    def delete(self, path: BlobPath) -> None:
        """Remove the directory for ``path`` and everything below it."""
        directory = self.build_path(path)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return
        except OSError as e:
            raise BlobIOError(str(directory), e.strerror or str(e)) from e
        logger.debug("Deleted %s", directory)

    def close(self) -> None:
        # nothing to do here, the executor belongs to the caller
        pass


class FsBlobContainer:
    """Container over one directory."""

    def __init__(self, blob_store: FsBlobStore, path: BlobPath, directory: Path):
        self._blob_store = blob_store
        self._path = path
        self._directory = directory

    def __repr__(self) -> str:
        return f"FsBlobContainer({str(self._directory)!r})"

    def path(self) -> BlobPath:
        return self._path

    @property
    def directory(self) -> Path:
        return self._directory

    def _blob_file(self, blob_name: str) -> Path:
        problem = _check_name(blob_name)
        if problem:
            raise ConfigurationError(f"Invalid blob name at {self._path}: {problem}", path=self._path)
        return self._directory / blob_name

    def blob_exists(self, blob_name: str) -> bool:
        return self._blob_file(blob_name).is_file()

    def read_blob(self, blob_name: str) -> BlobStream:
        blob_file = self._blob_file(blob_name)
        store = self._blob_store
        return BlobStream(
            lambda: open_file_handle(blob_file, str(blob_file)),
            store.executor(),
            store.buffer_size_in_bytes(),
            location=str(blob_file),
        )

    def read_blob_fully(self, blob_name: str) -> bytes:
        with self.read_blob(blob_name) as stream:
            return stream.readall()

    def write_blob(self, blob_name: str, data: BlobData) -> None:
        """
        Write a blob atomically, replacing any existing blob of that name.

        Args:
            blob_name: Blob name within this container
            data: Bytes or a binary file object to copy from
        """
        blob_file = self._blob_file(blob_name)
        tmppath = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                prefix=_TMP_PREFIX,
                suffix=_TMP_SUFFIX,
                dir=str(self._directory),
                delete=False,
            ) as tmp:
                tmppath = Path(tmp.name)
                if isinstance(data, (bytes, bytearray, memoryview)):
                    tmp.write(data)
                else:
                    shutil.copyfileobj(data, tmp, self._blob_store.buffer_size_in_bytes())
                tmp.flush()
                os.fsync(tmp.fileno())

            os.replace(str(tmppath), str(blob_file))
            _fsync_dir(self._directory)
        except OSError as e:
            if tmppath is not None:
                with contextlib.suppress(OSError):
                    tmppath.unlink()
            raise BlobIOError(str(blob_file), e.strerror or str(e)) from e
        logger.debug("Wrote %s", blob_file)

    def delete_blob(self, blob_name: str) -> bool:
        blob_file = self._blob_file(blob_name)
        try:
            blob_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise BlobIOError(str(blob_file), e.strerror or str(e)) from e
        return True

    def delete_blobs_by_prefix(self, blob_name_prefix: str) -> None:
        for blob_name in self.list_blobs_by_prefix(blob_name_prefix):
            self.delete_blob(blob_name)

    def list_blobs(self) -> Dict[str, BlobMetadata]:
        return self.list_blobs_by_prefix(None)

    def list_blobs_by_prefix(self, blob_name_prefix: Optional[str]) -> Dict[str, BlobMetadata]:
        """Regular files in this container whose names start with the prefix."""
        try:
            entries = sorted(os.scandir(self._directory), key=lambda e: e.name)
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise BlobIOError(str(self._directory), e.strerror or str(e)) from e

        blobs = {}
        for entry in entries:
            if _is_temp(entry.name) or not entry.is_file():
                continue
            if blob_name_prefix and not entry.name.startswith(blob_name_prefix):
                continue
            blobs[entry.name] = BlobMetadata(name=entry.name, length=entry.stat().st_size)
        return blobs
