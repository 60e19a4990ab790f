"""Blob store and repository settings.

Settings arrive as a plain mapping of option name to value (typically read
from YAML) and are resolved once, at construction time, into pydantic models.
"""

import re
from pathlib import Path
from typing import Any, Mapping, Union

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigurationError

DEFAULT_BUFFER_SIZE = 100 * 1024  # 100kb
DEFAULT_CONCURRENT_STREAMS = 5

_BYTE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "m": 1024 ** 2,
    "mb": 1024 ** 2,
    "g": 1024 ** 3,
    "gb": 1024 ** 3,
    "t": 1024 ** 4,
    "tb": 1024 ** 4,
    "p": 1024 ** 5,
    "pb": 1024 ** 5,
}

_BYTE_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)


def parse_byte_size(value: Union[int, str]) -> int:
    """
    Parse a byte-size value such as ``"64kb"`` or ``"1.5mb"`` into bytes.

    Units are binary multiples (1kb == 1024 bytes). A bare number is bytes.

    Args:
        value: Integer byte count or size string

    Returns:
        Size in bytes

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid byte size: {value!r}")
    if isinstance(value, int):
        return value

    match = _BYTE_SIZE_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid byte size: {value!r}")

    number, unit = match.groups()
    unit = unit.lower()
    if unit not in _BYTE_UNITS:
        raise ValueError(f"Unknown byte size unit '{unit}' in {value!r}")
    return int(float(number) * _BYTE_UNITS[unit])


class BlobStoreSettings(BaseModel):
    """Settings recognized by every blob store backend."""
    buffer_size: int = DEFAULT_BUFFER_SIZE  # chunk size for streamed reads

    @field_validator("buffer_size", mode="before")
    @classmethod
    def parse_buffer_size(cls, v: Any) -> int:
        return parse_byte_size(v)

    @field_validator("buffer_size")
    @classmethod
    def check_buffer_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("buffer_size must be positive")
        return v


class RepositorySettings(BlobStoreSettings):
    """
    Settings for a blob repository.

    Types:
    - "url" (default): read-only store rooted at ``url``
    - "fs": writable store rooted at directory ``location``
    """
    type: str = "url"
    url: str = ""                   # Base URL for url repositories
    location: str = ""              # Base directory for fs repositories
    concurrent_streams: int = DEFAULT_CONCURRENT_STREAMS  # Worker pool size

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("concurrent_streams")
    @classmethod
    def check_concurrent_streams(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("concurrent_streams must be positive")
        return v


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
        for err in exc.errors()
    )


def resolve_store_settings(
    settings: Union[Mapping[str, Any], BlobStoreSettings, None],
) -> BlobStoreSettings:
    """
    Resolve a settings mapping into BlobStoreSettings.

    Raises:
        ConfigurationError: If a recognized option has an invalid value
    """
    if isinstance(settings, BlobStoreSettings):
        return settings
    try:
        return BlobStoreSettings.model_validate(dict(settings or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid blob store settings: {_describe(e)}") from e


def resolve_repository_settings(
    settings: Union[Mapping[str, Any], RepositorySettings, None],
) -> RepositorySettings:
    """
    Resolve a settings mapping into RepositorySettings.

    Raises:
        ConfigurationError: If an option has an invalid value
    """
    if isinstance(settings, RepositorySettings):
        return settings
    try:
        return RepositorySettings.model_validate(dict(settings or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid repository settings: {_describe(e)}") from e


def load_repository_settings(path: Path) -> RepositorySettings:
    """Load repository settings from a YAML file.

    The options may sit at the top level or under a ``repository`` key.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}", path=str(path))

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping in {path}", path=str(path))

    return resolve_repository_settings(data.get("repository", data))
