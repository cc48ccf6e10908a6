"""Tests for native target discovery and concurrent multi-target packing.

Covers:
- discovery only picks targets with a package.json and a built binary
- every target's package.json is byte-identical after the run, whether
  its pack succeeded or failed
- the staged binary is removed from every target directory
- all-fail and filter-matches-nothing abort the run
- partial failure is aggregated, not raised
- fatal errors surface only after every target has restored its files
"""

import asyncio
from pathlib import Path

import pytest

from devpack.core.errors import AggregateFailure, UploadError
from devpack.packaging.pipeline import ArtifactPipeline
from devpack.packaging.targets import (
    NATIVE_PLATFORMS,
    MultiTargetPackager,
    discover_targets,
    filter_targets,
    parse_platform_filter,
)
from devpack.packaging.types import DeliveryMode, PackOptions, TargetStatus


def _snapshot(targets) -> dict[str, bytes]:
    return {t.platform: t.metadata_path.read_bytes() for t in targets}


def _packager(archiver, store=None) -> MultiTargetPackager:
    async def store_factory():
        return store

    return MultiTargetPackager(ArtifactPipeline(archiver, store_factory=store_factory if store else None))


class TestDiscoverTargets:
    def test_finds_built_targets_in_platform_order(self, next_project):
        targets = discover_targets(next_project)
        assert [t.platform for t in targets] == ["darwin-arm64", "linux-x64-gnu", "win32-x64-msvc"]
        target = targets[0]
        assert target.metadata_path == (
            next_project / "packages/next-swc/crates/napi/npm/darwin-arm64/package.json"
        )
        assert target.binary_path.name == "next-swc.darwin-arm64.node"
        assert target.staged_binary_path == target.metadata_dir / "next-swc.darwin-arm64.node"

    def test_skips_targets_without_binary(self, next_project):
        (next_project / "packages/next-swc/native/next-swc.linux-x64-gnu.node").unlink()
        assert "linux-x64-gnu" not in [t.platform for t in discover_targets(next_project)]

    def test_skips_binaries_without_package(self, next_project):
        (next_project / "packages/next-swc/native/next-swc.freebsd-x64.node").write_bytes(b"x")
        assert "freebsd-x64" not in [t.platform for t in discover_targets(next_project)]

    def test_empty_checkout(self, tmp_path):
        assert discover_targets(tmp_path) == []

    def test_known_platforms(self):
        assert len(NATIVE_PLATFORMS) == 13
        assert "linux-arm-gnueabihf" in NATIVE_PLATFORMS


class TestPlatformFilter:
    def test_parse(self):
        assert parse_platform_filter(" darwin-arm64 , linux-x64-gnu,, ") == ["darwin-arm64", "linux-x64-gnu"]

    def test_none_means_no_filter(self):
        assert parse_platform_filter(None) is None

    def test_empty_string_is_an_empty_filter(self):
        assert parse_platform_filter("") == []

    def test_filter_targets(self, next_project):
        targets = discover_targets(next_project)
        assert [t.platform for t in filter_targets(targets, ["win32-x64-msvc"])] == ["win32-x64-msvc"]
        assert filter_targets(targets, None) == targets


class TestPackageAll:
    @pytest.mark.asyncio
    async def test_all_succeed(self, next_project, archiver, store):
        targets = discover_targets(next_project)
        before = _snapshot(targets)

        result = await _packager(archiver, store).package_all(
            targets, "15.0.0-canary.1", PackOptions(cwd=next_project)
        )

        assert result.total == 3
        assert len(result.successful) == 3
        assert set(result.url_map) == {
            "@next/swc-darwin-arm64",
            "@next/swc-linux-x64-gnu",
            "@next/swc-win32-x64-msvc",
        }
        assert _snapshot(targets) == before

    @pytest.mark.asyncio
    async def test_packs_with_release_version_and_staged_binary(self, next_project, archiver, store):
        targets = discover_targets(next_project)
        await _packager(archiver, store).package_all(targets, "15.0.0-canary.1", PackOptions(cwd=next_project))

        document, files = archiver.seen["@next/swc-darwin-arm64"]
        assert document["version"] == "15.0.0-canary.1"
        assert "next-swc.darwin-arm64.node" in files
        for target in targets:
            assert not target.staged_binary_path.exists()
            assert target.binary_path.exists()

    @pytest.mark.asyncio
    async def test_failure_on_one_target_restores_all(self, next_project, fake_archiver_cls, store, tmp_path):
        archiver = fake_archiver_cls(tmp_path / "packs", fail_for=("@next/swc-linux-x64-gnu",))
        targets = discover_targets(next_project)
        before = _snapshot(targets)

        result = await _packager(archiver, store).package_all(targets, "15.0.0", PackOptions(cwd=next_project))

        assert _snapshot(targets) == before
        assert all(not t.staged_binary_path.exists() for t in targets)
        assert len(result.successful) == 2
        assert len(result.failed) == 1
        failed = result.failed[0]
        assert failed.platform == "linux-x64-gnu"
        assert failed.url is None
        assert "pnpm pack failed" in failed.error
        assert "@next/swc-linux-x64-gnu" not in result.url_map
        assert len(result.url_map) == 2

    @pytest.mark.asyncio
    async def test_every_target_yields_exactly_one_result(self, next_project, fake_archiver_cls, store, tmp_path):
        archiver = fake_archiver_cls(tmp_path / "packs", fail_for=("@next/swc-darwin-arm64",))
        targets = discover_targets(next_project)
        result = await _packager(archiver, store).package_all(targets, "15.0.0", PackOptions(cwd=next_project))

        assert sorted(r.platform for r in result.results) == sorted(t.platform for t in targets)
        for r in result.results:
            assert (r.url is None) != (r.error is None)

    @pytest.mark.asyncio
    async def test_all_fail_is_aggregate_failure(self, next_project, fake_archiver_cls, store, tmp_path):
        targets = discover_targets(next_project)
        archiver = fake_archiver_cls(
            tmp_path / "packs",
            fail_for=tuple(f"@next/swc-{t.platform}" for t in targets),
        )
        before = _snapshot(targets)

        with pytest.raises(AggregateFailure) as exc_info:
            await _packager(archiver, store).package_all(targets, "15.0.0", PackOptions(cwd=next_project))

        assert exc_info.value.result.total == 3
        assert len(exc_info.value.result.failed) == 3
        assert _snapshot(targets) == before

    @pytest.mark.asyncio
    async def test_filter_matching_nothing_is_fatal(self, next_project, archiver, store):
        targets = discover_targets(next_project)
        with pytest.raises(AggregateFailure, match="freebsd-x64"):
            await _packager(archiver, store).package_all(
                targets, "15.0.0", PackOptions(cwd=next_project), platform_filter=["freebsd-x64"]
            )
        assert archiver.packed == []

    @pytest.mark.asyncio
    async def test_filter_limits_targets(self, next_project, archiver, store):
        targets = discover_targets(next_project)
        result = await _packager(archiver, store).package_all(
            targets, "15.0.0", PackOptions(cwd=next_project), platform_filter=["darwin-arm64"]
        )
        assert [r.platform for r in result.results] == ["darwin-arm64"]

    @pytest.mark.asyncio
    async def test_no_targets_without_filter_is_empty(self, tmp_path, archiver):
        result = await _packager(archiver).package_all([], "15.0.0", PackOptions(cwd=tmp_path))
        assert result.total == 0
        assert result.url_map == {}

    @pytest.mark.asyncio
    async def test_dry_run_results(self, next_project, archiver):
        targets = discover_targets(next_project)
        result = await _packager(archiver).package_all(
            targets, "15.0.0", PackOptions(cwd=next_project, mode=DeliveryMode.DRY_RUN)
        )
        assert all(r.status is TargetStatus.DRY_RUN for r in result.results)
        assert all(url.startswith("dry-run://") for url in result.url_map.values())
        assert len(result.url_map) == 3

    @pytest.mark.asyncio
    async def test_fatal_error_raised_after_all_targets_restored(
        self, next_project, archiver, fake_store_cls
    ):
        store = fake_store_cls(put_failures=100)
        targets = discover_targets(next_project)
        before = _snapshot(targets)

        with pytest.raises(UploadError):
            await _packager(archiver, store).package_all(targets, "15.0.0", PackOptions(cwd=next_project))

        assert _snapshot(targets) == before
        assert all(not t.staged_binary_path.exists() for t in targets)
        assert len(archiver.packed) == 3

    @pytest.mark.asyncio
    async def test_targets_pack_concurrently(self, next_project, archiver):
        in_flight = 0
        peak = 0

        class SlowArchiver:
            async def archive(self, directory: Path, verbose=False, cancel=None):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.05)
                in_flight -= 1
                return await archiver.archive(directory)

        packager = MultiTargetPackager(ArtifactPipeline(SlowArchiver()))
        await packager.package_all(
            discover_targets(next_project), "15.0.0", PackOptions(cwd=next_project, mode=DeliveryMode.DRY_RUN)
        )
        assert peak == 3
