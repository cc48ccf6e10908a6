"""Shared fixtures for the devpack test suite.

No test talks to a real object store, registry or package manager:

  FakeStore     in-memory ObjectStore that records every call
  FakeArchiver  writes a deterministic archive without running pnpm
  next_project  a miniature next.js checkout with three built targets
"""

import hashlib
import json
from pathlib import Path
from typing import Optional

import pytest

from devpack.core.errors import PackagingError, StoreError
from devpack.packaging.archiver import PackedArchive, expected_filename
from devpack.packaging.store import ObjectStat


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_package_json(directory: Path, name: str, version: str = "1.0.0", **extra) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    # Differs from dump_metadata() formatting
    path.write_text(json.dumps({"name": name, "version": version, **extra}, indent=4, sort_keys=True))
    return path


class FakeStore:
    """ObjectStore that keeps objects in a dict of key -> md5 digest."""

    bucket = "test-bucket"

    def __init__(self, objects: Optional[dict[str, str]] = None, exists: bool = True, put_failures: int = 0):
        self.objects = dict(objects or {})
        self.exists = exists
        self.put_failures = put_failures
        self.calls: list[tuple] = []

    async def bucket_exists(self) -> bool:
        self.calls.append(("bucket_exists",))
        return self.exists

    async def stat_object(self, key: str) -> Optional[ObjectStat]:
        self.calls.append(("stat_object", key))
        digest = self.objects.get(key)
        return ObjectStat(key=key, digest=digest) if digest else None

    async def put_object(self, key: str, path: Path, digest: str) -> None:
        self.calls.append(("put_object", key))
        if self.put_failures > 0:
            self.put_failures -= 1
            raise StoreError("connection reset")
        self.objects[key] = digest

    async def presigned_url(self, key: str, ttl_seconds: int) -> str:
        self.calls.append(("presigned_url", key))
        return f"https://signed.example/{key}?X-Amz-Expires={ttl_seconds}"

    async def list_objects(self, prefix: str = "") -> list[ObjectStat]:
        self.calls.append(("list_objects", prefix))
        return [ObjectStat(key=k, digest=d) for k, d in self.objects.items()]

    async def delete_object(self, key: str) -> None:
        self.calls.append(("delete_object", key))
        self.objects.pop(key, None)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


class FakeArchiver:
    """Packs by writing package.json plus the directory listing into `<name>-<version>.tgz`.

    fail_for: package names whose archive step raises PackagingError.
    seen: package name -> (package.json document, sorted file names) at pack time.
    """

    def __init__(self, out_dir: Path, fail_for: tuple[str, ...] = ()):
        self.out_dir = out_dir
        self.fail_for = set(fail_for)
        self.seen: dict[str, tuple[dict, list[str]]] = {}
        self.packed: list[Path] = []

    async def archive(self, directory: Path, verbose: bool = False, cancel=None) -> PackedArchive:
        document = json.loads((directory / "package.json").read_text())
        name, version = document["name"], document["version"]
        self.seen[name] = (document, sorted(p.name for p in directory.iterdir()))
        if name in self.fail_for:
            raise PackagingError(f"pnpm pack failed for {name}")

        filename = expected_filename(name, version)
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / filename
        path.write_bytes(json.dumps(self.seen[name], sort_keys=True).encode())
        self.packed.append(directory)
        return PackedArchive(path=path, filename=filename, name=name, version=version)


def md5_of(path: Path) -> str:
    return hashlib.md5(path.read_bytes()).hexdigest()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


TARGET_PLATFORMS = ("darwin-arm64", "linux-x64-gnu", "win32-x64-msvc")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def archiver(tmp_path) -> FakeArchiver:
    return FakeArchiver(tmp_path / "packs")


@pytest.fixture
def package_dir(tmp_path) -> Path:
    directory = tmp_path / "pkg"
    write_package_json(directory, "@scope/pkg", "1.0.0")
    return directory


@pytest.fixture
def next_project(tmp_path) -> Path:
    """A next.js checkout: packages/next plus three built native targets."""
    root = tmp_path / "next.js"
    write_package_json(
        root / "packages" / "next",
        "next",
        "15.0.0-canary.1",
        optionalDependencies={"@next/swc-darwin-arm64": "15.0.0-canary.1"},
    )
    native = root / "packages" / "next-swc" / "native"
    native.mkdir(parents=True)
    for platform in TARGET_PLATFORMS:
        write_package_json(
            root / "packages" / "next-swc" / "crates" / "napi" / "npm" / platform,
            f"@next/swc-{platform}",
            "0.0.0",
        )
        (native / f"next-swc.{platform}.node").write_bytes(f"binary for {platform}".encode())
    return root


@pytest.fixture
def make_package():
    return write_package_json


@pytest.fixture
def fake_archiver_cls():
    return FakeArchiver


@pytest.fixture
def fake_store_cls():
    return FakeStore


@pytest.fixture
def md5():
    return md5_of
