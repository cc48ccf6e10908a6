"""HTTP fetch clients with an optional on-disk cache.

`HttpFetchClient` performs plain GETs with httpx. `CachedFetchClient`
wraps another client and keeps an in-memory map plus one JSON file per
URL under the cache directory:

    {"contents": "<response body>", "expires": 1718000000.0}

Cache behaviour is driven entirely by the injected `CachePolicy`; nothing
here reads the process environment.
"""

import asyncio
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

import httpx

from devpack.registry.types import CacheEntry, CachePolicy

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class FetchError(Exception):
    """Raised when a URL cannot be fetched (network error or non-2xx)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class FetchClient(Protocol):
    async def fetch(self, url: str) -> str:
        ...


class HttpFetchClient:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(url, f"Failed to fetch {url}: {exc}") from exc

        if response.status_code >= 400:
            raise FetchError(
                url,
                f"Failed to fetch {url}: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.text


class CachedFetchClient:
    def __init__(
        self,
        inner: FetchClient,
        cache_dir: Path,
        policy: CachePolicy,
        clock: Callable[[], float] = time.time,
    ):
        self._inner = inner
        self._dir = Path(cache_dir)
        self._policy = policy
        self._clock = clock
        self._memory: dict[str, CacheEntry] = {}

    async def fetch(self, url: str) -> str:
        entry = self._memory.get(url)
        if entry is not None:
            return entry.contents

        path = self._entry_path(url)
        entry = await asyncio.to_thread(_read_entry, path)
        if entry is not None:
            # A forced cache accepts stale entries without extending them.
            if self._policy.force_cache or entry.is_fresh(self._clock()):
                logger.debug("Cache hit for %s", url)
                self._memory[url] = entry
                return entry.contents
        elif self._policy.force_cache:
            raise FetchError(url, f"Force cache enabled but no cache entry exists for {url}")

        contents = await self._inner.fetch(url)
        entry = CacheEntry(
            contents=contents,
            expires=self._clock() + self._policy.ttl.total_seconds(),
        )
        await asyncio.to_thread(_write_entry, path, entry)
        self._memory[url] = entry
        return contents

    def _entry_path(self, url: str) -> Path:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self._dir / f"{digest}.json"


def _read_entry(path: Path) -> Optional[CacheEntry]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return CacheEntry(contents=payload["contents"], expires=float(payload["expires"]))
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Ignoring corrupt cache entry %s: %s", path, exc)
        return None


def _write_entry(path: Path, entry: CacheEntry) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entry.to_dict()), encoding="utf-8")


def build_fetch_client(
    policy: CachePolicy,
    cache_dir: Path,
    timeout: float = DEFAULT_TIMEOUT,
) -> FetchClient:
    """Return a cached client unless the policy skips the cache."""
    http = HttpFetchClient(timeout=timeout)
    if not policy.uses_cache:
        return http
    return CachedFetchClient(http, cache_dir, policy)
