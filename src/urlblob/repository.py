"""Blob repository: settings, worker pool and blob store in one unit.

Stores only borrow the executor they schedule blocking I/O on. The
repository is the layer that owns one: it sizes a thread pool from the
``concurrent_streams`` setting, hands it to the store, and shuts it down
when the repository is closed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Mapping, Union

from .constants import SETTINGS_FILE
from .path import BlobPath
from .settings import (
    RepositorySettings,
    load_repository_settings,
    resolve_repository_settings,
)
from .storage.base import BlobContainer, BlobStore
from .storage.factory import make_blob_store

logger = logging.getLogger(__name__)


class BlobRepository:
    """Blob repository backed by a configured blob store.

    Key responsibilities:
    - Resolve repository settings once, at construction
    - Own the worker pool used for blob reads
    - Build the blob store for the configured type
    - Tear everything down on close
    """

    def __init__(self, settings: Union[Mapping[str, Any], RepositorySettings, None]):
        """Initialize repository from settings.

        Args:
            settings: Repository settings mapping or model

        Raises:
            ConfigurationError: If settings are invalid
            NotImplementedError: If the repository type is not supported
        """
        self._settings = resolve_repository_settings(settings)
        self._executor = ThreadPoolExecutor(
            max_workers=self._settings.concurrent_streams,
            thread_name_prefix="urlblob",
        )
        try:
            self._blob_store = make_blob_store(self._settings, self._executor)
        except BaseException:
            self._executor.shutdown(wait=False)
            raise
        self._closed = False

        logger.info(
            "Opened %s repository %s (concurrent_streams=%d, buffer_size=%d)",
            self._settings.type,
            self._blob_store,
            self._settings.concurrent_streams,
            self._settings.buffer_size,
        )

    @classmethod
    def from_file(cls, path: Path) -> "BlobRepository":
        """Create a repository from a YAML settings file.

        A directory is taken to contain ``repository.yaml``.
        """
        path = Path(path)
        if path.is_dir():
            path = path / SETTINGS_FILE
        return cls(load_repository_settings(path))

    @property
    def settings(self) -> RepositorySettings:
        return self._settings

    @property
    def blob_store(self) -> BlobStore:
        return self._blob_store

    @property
    def closed(self) -> bool:
        return self._closed

    def blob_container(self, path: BlobPath) -> BlobContainer:
        return self._blob_store.blob_container(path)

    def close(self) -> None:
        """Close the store, then shut down the worker pool. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            self._blob_store.close()
        finally:
            self._executor.shutdown(wait=True, cancel_futures=True)
        logger.debug("Closed repository %s", self._blob_store)

    def __enter__(self) -> "BlobRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
