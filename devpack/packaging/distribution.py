"""Pack the `next` package together with its native SWC bindings.

    1. read packages/next/package.json for the name and version
    2. pack every native target at that version (MultiTargetPackager)
    3. fetch the published package.json for that version from the registry,
       or the canary one if this version is not published
    4. point optionalDependencies at the freshly packed target URLs
    5. pack packages/next with the merged package.json, then restore it

When the registry only knows the canary, its whole document replaces the
local one: an unreleased local version has no published optional
dependency list to merge with.
"""

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from devpack.packaging.metadata import PackageMetadata, mutate_metadata
from devpack.packaging.pipeline import ArtifactPipeline
from devpack.packaging.targets import MultiTargetPackager, discover_targets
from devpack.packaging.types import AggregateResult, PackOptions, PackResult
from devpack.registry import RegistryClient, RegistryMetadata

logger = logging.getLogger(__name__)

MAIN_PACKAGE_DIR = Path("packages", "next")


@dataclass
class DistributionResult:
    pack: PackResult
    targets: AggregateResult = field(default_factory=AggregateResult)

    @property
    def url(self) -> str:
        return self.pack.url

    def to_dict(self) -> dict:
        return {**self.pack.to_dict(), "targets": self.targets.to_dict()}


def merge_optional_dependencies(
    local_document: dict,
    registry_metadata: RegistryMetadata,
    url_map: Mapping[str, str],
) -> dict:
    """Return the package.json to pack the main package with.

    URLs in `url_map` win over registry-supplied values for the same key.
    """
    if registry_metadata.is_fallback:
        logger.warning(
            "%s is not published; using the %s package.json from %s. "
            "Local edits to package.json are ignored.",
            registry_metadata.requested_version, registry_metadata.version, registry_metadata.source_url,
        )
        document = copy.deepcopy(registry_metadata.document)
    else:
        document = copy.deepcopy(local_document)
        document["optionalDependencies"] = {
            **(local_document.get("optionalDependencies") or {}),
            **registry_metadata.optional_dependencies,
        }

    document["optionalDependencies"] = {
        **(document.get("optionalDependencies") or {}),
        **url_map,
    }
    return document


class DistributionCoordinator:
    def __init__(
        self,
        pipeline: ArtifactPipeline,
        registry: RegistryClient,
        packager: Optional[MultiTargetPackager] = None,
    ):
        self._pipeline = pipeline
        self._registry = registry
        self._packager = packager or MultiTargetPackager(pipeline)

    async def pack_project(
        self,
        project_root: Path,
        options: PackOptions,
        platform_filter: Optional[Sequence[str]] = None,
    ) -> DistributionResult:
        """Pack the project's main package and return its URL.

        Raises AggregateFailure (via MultiTargetPackager) before the main
        package is touched when no native target could be packed.
        """
        main_dir = project_root / MAIN_PACKAGE_DIR
        local = PackageMetadata.load(main_dir / "package.json")
        version = local.version
        logger.info("Packing %s@%s from %s", local.name, version, main_dir)

        targets = discover_targets(project_root)
        aggregate = await self._packager.package_all(targets, version, options, platform_filter)

        registry_metadata = await self._registry.package_metadata(local.name, version)
        logger.info("Using optional dependencies from %s", registry_metadata.source_url)

        main_options = dataclasses.replace(options, cwd=main_dir)
        async with mutate_metadata(local.path) as txn:
            txn.write(merge_optional_dependencies(txn.original.document, registry_metadata, aggregate.url_map))
            result = await self._pipeline.pack(main_options)

        return DistributionResult(pack=result, targets=aggregate)
