"""Pack every native-platform variant of the SWC bindings concurrently.

Each target lives in its own npm package directory:

    packages/next-swc/crates/napi/npm/<platform>/package.json
    packages/next-swc/native/next-swc.<platform>.node

and goes through

    discovered -> metadata staged -> binary staged -> packing
        -> succeeded | failed -> metadata restored

The package.json is rewritten with the release version and the binary is
copied next to it for the duration of the pack; both are undone on exit
whatever happened in between.

A target that fails to pack becomes a failed `TargetResult`; the run
only aborts when every target failed, when a platform filter matched
nothing, or when a fatal error (upload declined, config missing, restore
failed) occurred in any target. Fatal errors are raised after every
other target has finished and restored its files.
"""

import asyncio
import dataclasses
import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

from devpack.core.errors import AggregateFailure, DevpackError
from devpack.packaging.metadata import mutate_metadata, staged_copy
from devpack.packaging.pipeline import ArtifactPipeline
from devpack.packaging.progress import CompletionEvent, ProgressCoordinator
from devpack.packaging.types import (
    AggregateResult,
    PackOptions,
    TargetDescriptor,
    TargetResult,
    TargetStatus,
)

logger = logging.getLogger(__name__)

NATIVE_PLATFORMS = (
    "darwin-x64",
    "darwin-arm64",
    "linux-x64-gnu",
    "linux-x64-musl",
    "linux-arm64-gnu",
    "linux-arm64-musl",
    "win32-x64-msvc",
    "win32-arm64-msvc",
    "win32-ia32-msvc",
    "freebsd-x64",
    "android-arm64",
    "android-arm-eabi",
    "linux-arm-gnueabihf",
)

NPM_DIR = Path("packages", "next-swc", "crates", "napi", "npm")
NATIVE_DIR = Path("packages", "next-swc", "native")


def binary_filename(platform: str) -> str:
    return f"next-swc.{platform}.node"


def discover_targets(
    project_root: Path,
    platforms: Sequence[str] = NATIVE_PLATFORMS,
) -> list[TargetDescriptor]:
    """Targets whose package directory exists and whose binary has been built."""
    targets = []
    for platform in platforms:
        metadata_dir = project_root / NPM_DIR / platform
        binary_path = project_root / NATIVE_DIR / binary_filename(platform)
        if not (metadata_dir / "package.json").is_file():
            logger.debug("Skipping %s: no package directory at %s", platform, metadata_dir)
            continue
        if not binary_path.is_file() or not os.access(binary_path, os.R_OK):
            logger.debug("Skipping %s: no readable binary at %s", platform, binary_path)
            continue
        targets.append(TargetDescriptor(platform=platform, metadata_dir=metadata_dir, binary_path=binary_path))
    return targets


def parse_platform_filter(value: Optional[str]) -> Optional[list[str]]:
    """`"darwin-arm64, linux-x64-gnu,,"` -> `["darwin-arm64", "linux-x64-gnu"]`.

    Returns None when no filter was given.
    """
    if value is None:
        return None
    return [entry.strip() for entry in value.split(",") if entry.strip()]


def filter_targets(
    targets: Iterable[TargetDescriptor],
    platform_filter: Optional[Sequence[str]],
) -> list[TargetDescriptor]:
    targets = list(targets)
    if platform_filter is None:
        return targets
    wanted = set(platform_filter)
    return [t for t in targets if t.platform in wanted]


class MultiTargetPackager:
    def __init__(self, pipeline: ArtifactPipeline):
        self._pipeline = pipeline

    async def package_all(
        self,
        targets: Sequence[TargetDescriptor],
        version: str,
        options: PackOptions,
        platform_filter: Optional[Sequence[str]] = None,
    ) -> AggregateResult:
        """Pack all targets at `version` and aggregate the outcomes.

        Raises:
            AggregateFailure: every target failed, or `platform_filter`
                matched none of `targets`.
            DevpackError: a fatal error from any target, raised once all
                targets have finished.
        """
        selected = filter_targets(targets, platform_filter)
        if platform_filter is not None and not selected:
            available = ", ".join(t.platform for t in targets) or "none"
            raise AggregateFailure(
                f"No native targets match {', '.join(platform_filter) or '(empty filter)'} "
                f"(built: {available}); have the native binaries been built?",
                AggregateResult(),
            )
        if not selected:
            logger.warning("No native targets with built binaries found; packing without them")
            return AggregateResult()

        logger.info(
            "Packing %d native target(s) at %s: %s",
            len(selected), version, ", ".join(t.platform for t in selected),
        )

        async with ProgressCoordinator(total=len(selected), enabled=options.progress) as progress:
            outcomes = await asyncio.gather(
                *(self._run_target(target, version, options, progress) for target in selected),
                return_exceptions=True,
            )

        aggregate = AggregateResult()
        fatal: Optional[BaseException] = None
        for target, outcome in zip(selected, outcomes):
            if isinstance(outcome, TargetResult):
                aggregate.results.append(outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                aggregate.results.append(TargetResult.failed(target, "cancelled"))
            else:
                aggregate.results.append(TargetResult.failed(target, str(outcome)))
                if fatal is None:
                    fatal = outcome

        logger.info("Native targets: %s", aggregate.summary())
        if fatal is not None:
            raise fatal

        if aggregate.all_failed:
            raise AggregateFailure(
                f"All {aggregate.total} native targets failed to pack: "
                + "; ".join(f"{r.platform}: {r.error}" for r in aggregate.failed),
                aggregate,
            )
        if aggregate.failed:
            logger.warning(
                "%d of %d native targets failed (%s); the package will be missing those platforms",
                len(aggregate.failed), aggregate.total,
                ", ".join(r.platform for r in aggregate.failed),
            )
        return aggregate

    async def _run_target(
        self,
        target: TargetDescriptor,
        version: str,
        options: PackOptions,
        progress: ProgressCoordinator,
    ) -> TargetResult:
        try:
            result = await self._pack_target(target, version, options)
        except DevpackError as exc:
            if exc.is_fatal:
                progress.report(CompletionEvent(label=target.platform, ok=False))
                raise
            logger.error("Packing %s failed: %s", target.platform, exc)
            result = TargetResult.failed(target, str(exc))
        except asyncio.CancelledError:
            progress.report(CompletionEvent(label=target.platform, ok=False))
            raise
        except Exception as exc:
            logger.exception("Packing %s failed unexpectedly", target.platform)
            result = TargetResult.failed(target, f"{type(exc).__name__}: {exc}")

        progress.report(CompletionEvent(label=target.platform, ok=result.status is not TargetStatus.FAILED))
        return result

    async def _pack_target(
        self,
        target: TargetDescriptor,
        version: str,
        options: PackOptions,
    ) -> TargetResult:
        # Progress is reported through the coordinator
        target_options = dataclasses.replace(options, cwd=target.metadata_dir, progress=False)

        async with mutate_metadata(target.metadata_path) as txn:
            txn.write(txn.original.with_version(version).document)
            async with staged_copy(target.binary_path, target.staged_binary_path):
                packed = await self._pipeline.pack(target_options)

        if target_options.is_dry_run:
            return TargetResult.dry_run(target, packed.artifact.name, packed.url)
        return TargetResult.succeeded(target, packed.artifact.name, packed.url)
