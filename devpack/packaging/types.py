"""Types for the packaging module."""

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from devpack.packaging.server import EphemeralServer

# Scheme of the URL returned by a dry run; never resolvable
DRY_RUN_SCHEME = "dry-run"


class DeliveryMode(StrEnum):
    """How a packed artifact is delivered."""

    UPLOAD = "upload"
    SERVE = "serve"
    DRY_RUN = "dry_run"


class UploadDecision(StrEnum):
    """Result of comparing the local digest with the stored object's digest."""

    SKIP = "skip"
    UPLOAD = "upload"


def decide_upload(local_digest: str, remote_digest: Optional[str]) -> UploadDecision:
    """Identical content is never uploaded twice under the same key."""
    if remote_digest is not None and remote_digest == local_digest:
        return UploadDecision.SKIP
    return UploadDecision.UPLOAD


def dry_run_url(filename: str, digest: str) -> str:
    return f"{DRY_RUN_SCHEME}://{filename}?md5={digest}"


def is_dry_run_url(url: str) -> bool:
    return url.startswith(f"{DRY_RUN_SCHEME}://")


@dataclass(frozen=True)
class Artifact:
    """An immutable archive produced by `pnpm pack`.

    The object-store key and the served route are both the filename,
    `<normalized-name>-<version>.tgz`.
    """

    name: str
    version: str
    path: Path
    digest: str

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def key(self) -> str:
        return self.filename


@dataclass
class PackOptions:
    """Options for a single `ArtifactPipeline.pack()` call.

    progress: log each pipeline step at INFO instead of DEBUG.
    cancel: fired by the caller to stop in-flight subprocesses and close a
        running ephemeral server.
    """

    cwd: Path
    mode: DeliveryMode = DeliveryMode.UPLOAD
    verbose: bool = False
    progress: bool = True
    cancel: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_dry_run(self) -> bool:
        return self.mode is DeliveryMode.DRY_RUN


@dataclass
class PackResult:
    """Outcome of `ArtifactPipeline.pack()`.

    decision is None unless the artifact went through the upload path.
    server is set in serve mode; it keeps running until `options.cancel`
    fires.
    """

    url: str
    artifact: Artifact
    mode: DeliveryMode
    decision: Optional[UploadDecision] = None
    server: Optional["EphemeralServer"] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "name": self.artifact.name,
            "version": self.artifact.version,
            "filename": self.artifact.filename,
            "md5": self.artifact.digest,
            "mode": self.mode.value,
            "decision": self.decision.value if self.decision else None,
        }


# ---------------------------------------------------------------------------
# Multi-target types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetDescriptor:
    """One native-platform variant package.

    metadata_dir holds the variant's package.json; binary_path is the
    prebuilt `.node` file that gets staged into metadata_dir for packing.
    """

    platform: str
    metadata_dir: Path
    binary_path: Path

    @property
    def metadata_path(self) -> Path:
        return self.metadata_dir / "package.json"

    @property
    def staged_binary_path(self) -> Path:
        return self.metadata_dir / self.binary_path.name


class TargetStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class TargetResult:
    """Exactly one per discovered target: a URL or a failure reason, never both."""

    target: TargetDescriptor
    status: TargetStatus
    package_name: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def succeeded(cls, target: TargetDescriptor, package_name: str, url: str) -> "TargetResult":
        return cls(target=target, status=TargetStatus.SUCCEEDED, package_name=package_name, url=url)

    @classmethod
    def dry_run(cls, target: TargetDescriptor, package_name: str, url: str) -> "TargetResult":
        return cls(target=target, status=TargetStatus.DRY_RUN, package_name=package_name, url=url)

    @classmethod
    def failed(cls, target: TargetDescriptor, error: str) -> "TargetResult":
        return cls(target=target, status=TargetStatus.FAILED, error=error)

    @property
    def platform(self) -> str:
        return self.target.platform

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "status": self.status.value,
            "package_name": self.package_name,
            "url": self.url,
            "error": self.error,
        }


@dataclass
class AggregateResult:
    """All target results of one multi-target run."""

    results: list[TargetResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> list[TargetResult]:
        return [r for r in self.results if r.status is TargetStatus.SUCCEEDED]

    @property
    def failed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status is TargetStatus.FAILED]

    @property
    def dry_runs(self) -> list[TargetResult]:
        return [r for r in self.results if r.status is TargetStatus.DRY_RUN]

    @property
    def url_map(self) -> dict[str, str]:
        """package name -> URL for every target that produced one."""
        return {
            r.package_name: r.url
            for r in self.results
            if r.status is not TargetStatus.FAILED and r.package_name and r.url
        }

    @property
    def all_failed(self) -> bool:
        return self.total > 0 and len(self.failed) == self.total

    def summary(self) -> str:
        return f"{len(self.successful) + len(self.dry_runs)}/{self.total} succeeded, {len(self.failed)} failed"

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": [r.platform for r in self.successful],
            "failed": [r.to_dict() for r in self.failed],
            "url_map": self.url_map,
        }
