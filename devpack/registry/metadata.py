"""Registry lookups for a package's published package.json.

`RegistryClient.package_metadata(package, version)`:

  1. GET <registry>/<package>/<version>
  2. on failure, retry once against <fallback>/<package>@<version>/package.json
  3. if both endpoints answer 404 the version is not published: repeat
     1-2 for the canary dist-tag and mark the result as a fallback.
     Any other failure (timeout, 5xx) raises `RegistryError`.

The document must be a JSON object with an `optionalDependencies`
object; anything else raises `RegistryError`.
"""

import json
import logging

from devpack.core.errors import RegistryError
from devpack.registry.client import FetchClient, FetchError
from devpack.registry.types import RegistryMetadata

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_FALLBACK_URL = "https://unpkg.com"
DEFAULT_CANARY_TAG = "canary"


class RegistryClient:
    def __init__(
        self,
        fetch_client: FetchClient,
        registry_url: str = DEFAULT_REGISTRY_URL,
        fallback_url: str = DEFAULT_FALLBACK_URL,
        canary_tag: str = DEFAULT_CANARY_TAG,
    ):
        self._client = fetch_client
        self._registry_url = registry_url.rstrip("/")
        self._fallback_url = fallback_url.rstrip("/")
        self.canary_tag = canary_tag

    def urls_for(self, package: str, version: str) -> list[str]:
        return [
            f"{self._registry_url}/{package}/{version}",
            f"{self._fallback_url}/{package}@{version}/package.json",
        ]

    async def package_metadata(self, package: str, version: str) -> RegistryMetadata:
        """Fetch `package@version`, or the canary document if `version` is not published.

        Raises:
            RegistryError: the version could not be fetched for any reason
                other than both endpoints answering 404, or the canary
                could not be fetched either.
        """
        failures: list[FetchError] = []
        try:
            url, document = await self._fetch_document(package, version, failures)
            return RegistryMetadata(document=document, requested_version=version, source_url=url)
        except FetchError as exc:
            if not all(failure.is_not_found for failure in failures):
                raise RegistryError(
                    f"Failed to fetch package.json for {package}@{version}: "
                    f"{'; '.join(str(f) for f in failures)}"
                ) from exc
            logger.warning(
                "%s@%s is not published; falling back to %s",
                package, version, self.canary_tag,
            )

        try:
            url, document = await self._fetch_document(package, self.canary_tag, failures)
        except FetchError as exc:
            raise RegistryError(
                f"Failed to fetch package.json for {package}@{version} "
                f"or {package}@{self.canary_tag}: {'; '.join(str(f) for f in failures)}"
            ) from exc
        return RegistryMetadata(
            document=document,
            requested_version=version,
            source_url=url,
            is_fallback=True,
        )

    async def _fetch_document(
        self,
        package: str,
        version: str,
        failures: list[FetchError],
    ) -> tuple[str, dict]:
        """Try the registry, then the fallback endpoint; re-raise the last FetchError."""
        urls = self.urls_for(package, version)
        for index, url in enumerate(urls):
            try:
                text = await self._client.fetch(url)
            except FetchError as exc:
                failures.append(exc)
                if index == len(urls) - 1:
                    raise
                logger.info("Fetching %s failed (%s); retrying against fallback", url, exc)
                continue
            return url, parse_package_document(text, url)
        raise FetchError(urls[-1], "No registry URLs to try")


def parse_package_document(text: str, url: str) -> dict:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegistryError(f"Expected JSON package.json from {url}: {exc}") from exc

    if not isinstance(document, dict):
        raise RegistryError(f"Expected package.json from {url} to be an object")
    if not isinstance(document.get("optionalDependencies"), dict):
        raise RegistryError(f"Expected package.json from {url} to have optionalDependencies")
    return document
