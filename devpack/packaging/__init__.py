"""Archive, hash and deliver packages, single or multi-target."""

from devpack.packaging.archiver import Archiver, PackedArchive, expected_filename, normalize_package_name
from devpack.packaging.distribution import DistributionCoordinator, DistributionResult, merge_optional_dependencies
from devpack.packaging.metadata import PackageMetadata, mutate_metadata, staged_copy
from devpack.packaging.pipeline import ArtifactPipeline
from devpack.packaging.retry import RetryMode, RetryPolicy
from devpack.packaging.server import EphemeralServer, create_artifact_app
from devpack.packaging.store import ObjectStat, ObjectStore, S3ObjectStore
from devpack.packaging.targets import (
    NATIVE_PLATFORMS,
    MultiTargetPackager,
    discover_targets,
    parse_platform_filter,
)
from devpack.packaging.types import (
    AggregateResult,
    Artifact,
    DeliveryMode,
    PackOptions,
    PackResult,
    TargetDescriptor,
    TargetResult,
    TargetStatus,
    UploadDecision,
)

__all__ = [
    "AggregateResult",
    "Archiver",
    "Artifact",
    "ArtifactPipeline",
    "DeliveryMode",
    "DistributionCoordinator",
    "DistributionResult",
    "EphemeralServer",
    "MultiTargetPackager",
    "NATIVE_PLATFORMS",
    "ObjectStat",
    "ObjectStore",
    "PackOptions",
    "PackResult",
    "PackageMetadata",
    "PackedArchive",
    "RetryMode",
    "RetryPolicy",
    "S3ObjectStore",
    "TargetDescriptor",
    "TargetResult",
    "TargetStatus",
    "UploadDecision",
    "create_artifact_app",
    "discover_targets",
    "expected_filename",
    "merge_optional_dependencies",
    "mutate_metadata",
    "normalize_package_name",
    "parse_platform_filter",
    "staged_copy",
]
