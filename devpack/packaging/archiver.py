"""Archive a package directory with `pnpm pack`.

Every call packs into a fresh directory under the system temp root
(`next-dev-utils-XXXX`). The expected archive name is derived from the
package.json, `@scope/name` + `1.0.0` -> `scope-name-1.0.0.tgz`, and must
be present in that directory afterwards; anything else is treated as a
packaging failure rather than trusting the subprocess exit code alone.

Temp directories are not removed here; the OS temp lifecycle handles
them.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import NamedTuple, Optional

from devpack.commands import Command, pnpm
from devpack.core.errors import CommandCancelled, CommandError, PackagingError, PrivatePackageError
from devpack.packaging.metadata import PackageMetadata

logger = logging.getLogger(__name__)

TEMP_PREFIX = "next-dev-utils-"
ARCHIVE_EXTENSION = ".tgz"


class PackedArchive(NamedTuple):
    path: Path
    filename: str
    name: str
    version: str


def normalize_package_name(name: str) -> str:
    """`@next/swc-linux-x64-gnu` -> `next-swc-linux-x64-gnu`."""
    return name.replace("@", "").replace("/", "-")


def expected_filename(name: str, version: str) -> str:
    return f"{normalize_package_name(name)}-{version}{ARCHIVE_EXTENSION}"


class Archiver:
    def __init__(self, command: Command = pnpm, tmp_root: Optional[Path] = None):
        self._command = command
        self._tmp_root = tmp_root

    async def archive(
        self,
        directory: Path,
        verbose: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> PackedArchive:
        """Pack `directory` and return the archive's absolute path and filename.

        Raises:
            PrivatePackageError: package.json has `"private": true`.
            PackagingError: `pnpm pack` failed or the archive is missing.
        """
        metadata = PackageMetadata.load(directory / "package.json")
        if metadata.is_private:
            raise PrivatePackageError(
                f"{metadata.name} is marked private; remove `private` from "
                f"{metadata.path} to pack it"
            )

        filename = expected_filename(metadata.name, metadata.version)
        destination = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=self._tmp_root))
        logger.debug("Packing %s into %s", directory, destination)

        try:
            await self._command(
                ["pack", "--pack-destination", str(destination)],
                cwd=directory,
                verbose=verbose,
                cancel=cancel,
            )
        except CommandCancelled:
            raise
        except CommandError as exc:
            raise PackagingError(f"pnpm pack failed for {metadata.name}: {exc}") from exc

        produced = os.listdir(destination)
        if filename not in produced:
            raise PackagingError(
                f"Expected {filename} in {destination} after packing {metadata.name}, "
                f"found: {', '.join(sorted(produced)) or 'nothing'}"
            )

        path = (destination / filename).resolve()
        logger.debug("Packed %s", path)
        return PackedArchive(path=path, filename=filename, name=metadata.name, version=metadata.version)
