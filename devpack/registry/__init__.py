"""Registry metadata fetching with an explicit cache policy."""

from devpack.registry.client import (
    CachedFetchClient,
    FetchClient,
    FetchError,
    HttpFetchClient,
    build_fetch_client,
)
from devpack.registry.metadata import RegistryClient
from devpack.registry.types import CacheEntry, CachePolicy, RegistryMetadata

__all__ = [
    "CacheEntry",
    "CachePolicy",
    "CachedFetchClient",
    "FetchClient",
    "FetchError",
    "HttpFetchClient",
    "RegistryClient",
    "RegistryMetadata",
    "build_fetch_client",
]
