"""Transactional edits of on-disk package.json files.

`mutate_metadata()` snapshots the file's exact bytes on entry and writes
them back on exit, whether the body returned, raised, or was cancelled:

    async with mutate_metadata(pkg_dir / "package.json") as txn:
        txn.write(txn.original.with_version("1.2.3").document)
        await pipeline.pack(options)
    # package.json is byte-identical to what it was before

If the restore itself fails, `MetadataRestoreError` is raised, chained to
whatever error the body raised.

`staged_copy()` is the same idea for a file copied in for packing: the
copy is removed on exit.
"""

import asyncio
import copy
import json
import logging
import shutil
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from devpack.core.errors import MetadataRestoreError, PackagingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageMetadata:
    """A parsed package.json plus the path it came from."""

    path: Path
    document: dict

    @classmethod
    def load(cls, path: Path) -> "PackageMetadata":
        try:
            return cls.from_bytes(path, path.read_bytes())
        except FileNotFoundError as exc:
            raise PackagingError(f"No package.json at {path}") from exc

    @classmethod
    def from_bytes(cls, path: Path, raw: bytes) -> "PackageMetadata":
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PackagingError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise PackagingError(f"Expected a JSON object in {path}")
        return cls(path=path, document=document)

    @property
    def name(self) -> str:
        name = self.document.get("name")
        if not isinstance(name, str) or not name:
            raise PackagingError(f"{self.path} has no package name")
        return name

    @property
    def version(self) -> str:
        version = self.document.get("version")
        if not isinstance(version, str) or not version:
            raise PackagingError(f"{self.path} has no version")
        return version

    @property
    def is_private(self) -> bool:
        return bool(self.document.get("private"))

    @property
    def optional_dependencies(self) -> dict[str, str]:
        return dict(self.document.get("optionalDependencies") or {})

    def with_version(self, version: str) -> "PackageMetadata":
        document = copy.deepcopy(self.document)
        document["version"] = version
        return PackageMetadata(path=self.path, document=document)


def dump_metadata(document: dict) -> bytes:
    return (json.dumps(document, indent=2) + "\n").encode("utf-8")


class MetadataTransaction:
    """Handle yielded by `mutate_metadata()`."""

    def __init__(self, path: Path, original_bytes: bytes):
        self.path = path
        self.original_bytes = original_bytes
        self.original = PackageMetadata.from_bytes(path, original_bytes)
        self.mutated = False

    def write(self, document: dict) -> None:
        # Set first: a write that fails part way leaves the file truncated
        self.mutated = True
        try:
            self.path.write_bytes(dump_metadata(document))
        except OSError as exc:
            raise PackagingError(f"Could not write {self.path}: {exc}") from exc

    def restore(self) -> None:
        """Write the snapshot back. Synchronous, so cancellation cannot interrupt it."""
        if not self.mutated:
            return
        self.path.write_bytes(self.original_bytes)
        self.mutated = False


@asynccontextmanager
async def mutate_metadata(path: Path) -> AsyncIterator[MetadataTransaction]:
    try:
        original_bytes = path.read_bytes()
    except FileNotFoundError as exc:
        raise PackagingError(f"No package.json at {path}") from exc

    txn = MetadataTransaction(path, original_bytes)
    body_error: Optional[BaseException] = None
    try:
        yield txn
    except BaseException as exc:
        body_error = exc
        raise
    finally:
        try:
            txn.restore()
        except OSError as restore_exc:
            logger.error("Failed to restore %s: %s", path, restore_exc)
            raise MetadataRestoreError(
                f"Could not restore {path}; it is left modified: {restore_exc}"
            ) from (body_error or restore_exc)
        logger.debug("Restored %s", path)


@asynccontextmanager
async def staged_copy(source: Path, destination: Path) -> AsyncIterator[Path]:
    """Copy `source` to `destination` for the duration of the block."""
    try:
        await asyncio.to_thread(shutil.copyfile, source, destination)
    except OSError as exc:
        raise PackagingError(f"Could not stage {source} into {destination.parent}: {exc}") from exc
    try:
        yield destination
    finally:
        try:
            destination.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove staged file %s: %s", destination, exc)
