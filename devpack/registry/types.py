"""Types for the registry fetch layer."""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class CachePolicy:
    """How the fetch client uses its on-disk cache.

    skip_cache:  bypass the cache entirely (ignored when force_cache is set).
    force_cache: serve cache entries even when expired; a missing entry
                 is an error instead of a network fetch.
    ttl:         lifetime of newly written entries.
    """

    skip_cache: bool = False
    force_cache: bool = False
    ttl: timedelta = timedelta(hours=1)

    @property
    def uses_cache(self) -> bool:
        return self.force_cache or not self.skip_cache


@dataclass
class CacheEntry:
    contents: str
    expires: float  # Unix timestamp, seconds

    def is_fresh(self, now: float) -> bool:
        return now < self.expires

    def to_dict(self) -> dict:
        return {"contents": self.contents, "expires": self.expires}


@dataclass
class RegistryMetadata:
    """A package.json document fetched from the registry.

    requested_version: the version that was asked for.
    is_fallback: True when the requested version was unavailable and the
        canary dist-tag's document was fetched instead.
    """

    document: dict
    requested_version: str
    source_url: str
    is_fallback: bool = False

    @property
    def version(self) -> str:
        return str(self.document.get("version", ""))

    @property
    def optional_dependencies(self) -> dict[str, str]:
        return dict(self.document.get("optionalDependencies") or {})

