"""Constants for urlblob."""

# Default settings file for `BlobRepository.from_file`
SETTINGS_FILE = "repository.yaml"

# Version
URLBLOB_VERSION = "0.1.0"
