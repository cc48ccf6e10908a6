"""Content digests for packed artifacts.

MD5 is used because S3-compatible stores report the MD5 of a
single-part upload as the object's ETag, so the local digest can be
compared with `stat_object()` directly. It is a change detector only.
"""

import asyncio
import hashlib
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def digest_bytes(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def digest_file(path: Path) -> str:
    """Return the hex MD5 digest of the file at `path`."""
    hasher = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


async def digest(path: Path) -> str:
    """Async wrapper around `digest_file()`; reading runs in a worker thread."""
    return await asyncio.to_thread(digest_file, path)
