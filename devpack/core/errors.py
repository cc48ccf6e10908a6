"""Error taxonomy for the packaging toolchain.

Every error raised by devpack carries an `ErrorKind`:

  fatal        the enclosing command must stop (missing bucket, private
                 package, declined upload retry, failed metadata restore).
  recoverable  the failure is local to one unit of work and may be
                 aggregated by the caller (one native target failing to pack).

Library code never exits the process. The CLI dispatcher in `devpack.cli`
is the single place that turns a fatal error into a non-zero exit code.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from devpack.packaging.types import AggregateResult


class ErrorKind(StrEnum):
    """Whether an error must terminate the command or can be aggregated."""

    FATAL = "fatal"
    RECOVERABLE = "recoverable"


class DevpackError(Exception):
    """Base class for all devpack errors."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    @property
    def is_fatal(self) -> bool:
        return self.kind is ErrorKind.FATAL


class ConfigurationError(DevpackError):
    """Invalid or missing configuration (missing bucket, bad flag combination)."""


class SecretResolutionError(ConfigurationError):
    """A secret reference could not be resolved through the secret manager."""


class PackagingError(DevpackError):
    """The package manager did not produce the expected archive."""

    kind = ErrorKind.RECOVERABLE


class PrivatePackageError(ConfigurationError):
    """Raised when asked to pack a package marked `private`."""


class CommandError(DevpackError):
    """A subprocess exited with a non-zero status.

    Carries the exit code and the combined stdout/stderr capture so callers
    can report the underlying cause.
    """

    kind = ErrorKind.RECOVERABLE

    def __init__(self, message: str, exit_code: int = -1, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message)


class CommandCancelled(CommandError):
    """The subprocess was terminated because its cancel event fired."""


class StoreError(DevpackError):
    """An object-store call failed."""

    kind = ErrorKind.RECOVERABLE


class UploadError(DevpackError):
    """Uploading an artifact failed and no further retry was allowed."""


class RegistryError(DevpackError):
    """Package metadata could not be fetched from the registry or its fallback."""


class MetadataRestoreError(DevpackError):
    """Original package metadata could not be written back to disk.

    Always fatal: leaving a mutated package.json behind is worse than
    aborting the run.
    """


class AggregateFailure(DevpackError):
    """A multi-target run produced nothing usable.

    Raised when every discovered target failed, or when a platform filter
    matched none of the discovered targets.
    """

    def __init__(self, message: str, result: "AggregateResult"):
        self.result = result
        super().__init__(message)
