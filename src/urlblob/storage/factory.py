"""Factory for creating blob store instances."""

from concurrent.futures import Executor

from ..errors import ConfigurationError
from ..settings import RepositorySettings
from .base import BlobStore
from .fs import FsBlobStore
from .url import URLBlobStore


def validate_repository_settings(settings: RepositorySettings) -> None:
    """
    Early validation of backend-specific settings.

    Args:
        settings: Repository settings to validate

    Raises:
        ConfigurationError: If a required option is missing
    """
    if settings.type == "url" and not settings.url:
        raise ConfigurationError("url is required for url repositories")

    if settings.type == "fs" and not settings.location:
        raise ConfigurationError("location (directory path) is required for fs repositories")


def make_blob_store(settings: RepositorySettings, executor: Executor) -> BlobStore:
    """
    Create a blob store for the configured repository type.

    Args:
        settings: Repository settings
        executor: Executor the store schedules blocking I/O on (borrowed)

    Returns:
        BlobStore instance

    Raises:
        ConfigurationError: If settings are invalid
        NotImplementedError: If the repository type is not supported
    """
    validate_repository_settings(settings)

    if settings.type == "url":
        return URLBlobStore(settings, executor, settings.url)

    elif settings.type == "fs":
        return FsBlobStore(settings, executor, settings.location)

    else:
        raise NotImplementedError(f"Repository type {settings.type} not supported")
