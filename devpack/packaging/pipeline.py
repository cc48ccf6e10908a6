"""Pack a directory and deliver the archive.

    archive (pnpm pack) -> digest -> dry run | serve | upload

Dry run returns `dry-run://<filename>?md5=<digest>` without touching the
network. Serve starts an `EphemeralServer` and returns its URL; the
server outlives `pack()` until `options.cancel` fires. Upload compares
the digest with the stored object's ETag, uploads only on mismatch or
absence, and returns a presigned GET URL either way.

An upload that fails and is not retried raises `UploadError`, which is
fatal for the enclosing command.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from devpack.core.errors import ConfigurationError, StoreError, UploadError
from devpack.packaging import hasher
from devpack.packaging.archiver import Archiver
from devpack.packaging.retry import RetryPolicy
from devpack.packaging.server import EphemeralServer
from devpack.packaging.store import ObjectStore
from devpack.packaging.types import (
    Artifact,
    DeliveryMode,
    PackOptions,
    PackResult,
    UploadDecision,
    decide_upload,
    dry_run_url,
)
from devpack.prompts import Confirmer

logger = logging.getLogger(__name__)

DEFAULT_PRESIGN_TTL = 60 * 60 * 24

StoreFactory = Callable[[], Awaitable[ObjectStore]]


class ArtifactPipeline:
    """Archive -> hash -> deliver, for one package directory at a time.

    The object store is built lazily through `store_factory` on the first
    upload so dry runs and serve mode never need credentials.
    """

    def __init__(
        self,
        archiver: Archiver,
        store_factory: Optional[StoreFactory] = None,
        confirmer: Optional[Confirmer] = None,
        retry_policy: RetryPolicy = RetryPolicy(),
        presign_ttl: int = DEFAULT_PRESIGN_TTL,
        server_factory: Callable[[Artifact], EphemeralServer] = EphemeralServer,
    ):
        self._archiver = archiver
        self._store_factory = store_factory
        self._confirmer = confirmer
        self._retry_policy = retry_policy
        self._presign_ttl = presign_ttl
        self._server_factory = server_factory
        self._store: Optional[ObjectStore] = None
        self._bucket_checked = False
        # Shared by concurrently packing targets
        self._store_lock = asyncio.Lock()
        self._prompt_lock = asyncio.Lock()

    async def pack(self, options: PackOptions) -> PackResult:
        artifact = await self.build_artifact(options)

        if options.mode is DeliveryMode.DRY_RUN:
            url = dry_run_url(artifact.filename, artifact.digest)
            logger.info("Dry run: %s (md5=%s) would be delivered", artifact.filename, artifact.digest)
            return PackResult(url=url, artifact=artifact, mode=options.mode)

        if options.mode is DeliveryMode.SERVE:
            server = self._server_factory(artifact)
            await server.start(options.cancel)
            return PackResult(url=server.url, artifact=artifact, mode=options.mode, server=server)

        return await self._upload(artifact, options)

    async def build_artifact(self, options: PackOptions) -> Artifact:
        _step(options, "Packing %s", options.cwd)
        packed = await self._archiver.archive(Path(options.cwd), verbose=options.verbose, cancel=options.cancel)
        digest = await hasher.digest(packed.path)
        _step(options, "Packed %s (md5=%s)", packed.filename, digest)
        return Artifact(name=packed.name, version=packed.version, path=packed.path, digest=digest)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _upload(self, artifact: Artifact, options: PackOptions) -> PackResult:
        store = await self._get_store()

        remote = await store.stat_object(artifact.key)
        decision = decide_upload(artifact.digest, remote.digest if remote else None)
        if decision is UploadDecision.SKIP:
            _step(options, "%s is already uploaded with a matching digest; skipping", artifact.key)
        else:
            _step(options, "Uploading %s to %s", artifact.key, store.bucket)
            await self._put_with_retry(store, artifact)

        try:
            url = await store.presigned_url(artifact.key, self._presign_ttl)
        except StoreError as exc:
            raise UploadError(f"Could not create a download URL for {artifact.key}: {exc}") from exc
        return PackResult(url=url, artifact=artifact, mode=options.mode, decision=decision)

    async def _get_store(self) -> ObjectStore:
        async with self._store_lock:
            if self._store is None:
                if self._store_factory is None:
                    raise ConfigurationError("No object store is configured for uploads")
                self._store = await self._store_factory()

            if not self._bucket_checked:
                try:
                    exists = await self._store.bucket_exists()
                except StoreError as exc:
                    raise ConfigurationError(str(exc)) from exc
                if not exists:
                    raise ConfigurationError(f"Bucket {self._store.bucket} does not exist")
                self._bucket_checked = True
            return self._store

    async def _put_with_retry(self, store: ObjectStore, artifact: Artifact) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                await store.put_object(artifact.key, artifact.path, artifact.digest)
                return
            except StoreError as exc:
                logger.error("Upload attempt %d for %s failed: %s", attempt, artifact.key, exc)
                async with self._prompt_lock:
                    retry = await self._retry_policy.should_retry(attempt, self._confirmer)
                if not retry:
                    raise UploadError(
                        f"Failed to upload {artifact.key} after {attempt} attempt(s): {exc}"
                    ) from exc


def _step(options: PackOptions, message: str, *args) -> None:
    logger.log(logging.INFO if options.progress else logging.DEBUG, message, *args)
