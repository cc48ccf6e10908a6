"""Settings, logging and the error taxonomy shared by every devpack module."""

from devpack.core.errors import (
    AggregateFailure,
    CommandCancelled,
    CommandError,
    ConfigurationError,
    DevpackError,
    ErrorKind,
    MetadataRestoreError,
    PackagingError,
    PrivatePackageError,
    RegistryError,
    SecretResolutionError,
    StoreError,
    UploadError,
)
from devpack.core.settings import Settings, get_settings

__all__ = [
    "AggregateFailure",
    "CommandCancelled",
    "CommandError",
    "ConfigurationError",
    "DevpackError",
    "ErrorKind",
    "MetadataRestoreError",
    "PackagingError",
    "PrivatePackageError",
    "RegistryError",
    "SecretResolutionError",
    "Settings",
    "StoreError",
    "UploadError",
    "get_settings",
]
