"""Wire services from Settings.

Commands build everything through these functions so tests can swap any
single collaborator without touching the rest.
"""

import logging
from datetime import timedelta

from devpack.config import ConfigService, ConfigStore, OnePasswordResolver
from devpack.core.settings import Settings
from devpack.packaging import ArtifactPipeline, Archiver, RetryPolicy, S3ObjectStore
from devpack.prompts import ConsolePrompter, Prompter
from devpack.registry import CachePolicy, RegistryClient, build_fetch_client

logger = logging.getLogger(__name__)


def build_config_service(settings: Settings, prompter: Prompter) -> ConfigService:
    return ConfigService(
        store=ConfigStore(settings.config_path),
        resolver=OnePasswordResolver(),
        prompter=prompter,
    )


async def build_object_store(config: ConfigService, settings: Settings) -> S3ObjectStore:
    """Build the S3 store from configured credentials, prompting for any that are missing."""
    endpoint = await config.get("endpoint")
    bucket = await config.get("bucket")
    access_key = await config.get("access_key")
    secret_key = await config.get("secret_key")
    logger.debug("Using bucket %s at %s", bucket, endpoint)
    return S3ObjectStore.from_credentials(
        endpoint=endpoint,
        bucket=bucket,
        access_key=access_key,
        secret_key=secret_key,
        region=settings.region,
    )


def build_pipeline(settings: Settings, config: ConfigService, prompter: Prompter) -> ArtifactPipeline:
    async def store_factory() -> S3ObjectStore:
        return await build_object_store(config, settings)

    return ArtifactPipeline(
        archiver=Archiver(),
        store_factory=store_factory,
        confirmer=prompter,
        retry_policy=RetryPolicy.from_settings(settings),
        presign_ttl=settings.presign_ttl_seconds,
    )


def build_cache_policy(settings: Settings) -> CachePolicy:
    return CachePolicy(
        skip_cache=settings.skip_cache,
        force_cache=settings.force_cache,
        ttl=timedelta(seconds=settings.cache_ttl_seconds),
    )


def build_registry_client(settings: Settings) -> RegistryClient:
    fetch_client = build_fetch_client(
        build_cache_policy(settings),
        settings.cache_dir,
        timeout=settings.registry_timeout,
    )
    return RegistryClient(
        fetch_client,
        registry_url=settings.registry_url,
        fallback_url=settings.registry_fallback_url,
        canary_tag=settings.canary_tag,
    )


def build_prompter() -> ConsolePrompter:
    return ConsolePrompter()
