"""Single-artifact HTTP server used by `pack --serve`.

Serves one route, `/<filename>?md5=<digest>`:

  200  application/octet-stream body when the digest matches
  400  the filename matches but the digest does not
  404  any other path

The server runs uvicorn in-process on 127.0.0.1 with an OS-assigned
port. `start()` returns once the socket is listening; the server keeps
running until `close()` is called or the cancel event passed to
`start()` fires.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response, status

from devpack.core.errors import PackagingError
from devpack.packaging.types import Artifact

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"


def create_artifact_app(artifact: Artifact) -> FastAPI:
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/{path:path}")
    async def get_artifact(path: str, md5: Optional[str] = None) -> Response:
        if path != artifact.filename:
            return Response(status_code=status.HTTP_404_NOT_FOUND)
        if md5 != artifact.digest:
            return Response(status_code=status.HTTP_400_BAD_REQUEST)

        body = await asyncio.to_thread(artifact.path.read_bytes)
        return Response(
            content=body,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
        )

    return app


class EphemeralServer:
    def __init__(self, artifact: Artifact, host: str = DEFAULT_HOST):
        self.artifact = artifact
        self.host = host
        self.port: Optional[int] = None
        self._server = uvicorn.Server(
            uvicorn.Config(
                create_artifact_app(artifact),
                host=host,
                port=0,
                lifespan="off",
                log_level="warning",
                access_log=False,
            )
        )
        self._task: Optional[asyncio.Task] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        if self.port is None:
            raise RuntimeError("Server is not running")
        return f"http://{self.host}:{self.port}/{self.artifact.filename}?md5={self.artifact.digest}"

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, cancel: Optional[asyncio.Event] = None) -> int:
        """Start serving and return the bound port once it accepts connections."""
        self._task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._task.done():
                error = self._task.exception() if not self._task.cancelled() else None
                raise PackagingError(f"Artifact server failed to start: {error}")
            await asyncio.sleep(0.01)

        sockets = self._server.servers[0].sockets
        self.port = sockets[0].getsockname()[1]
        logger.info("Serving %s on %s", self.artifact.filename, self.url)

        if cancel is not None:
            self._watcher = asyncio.create_task(self._close_on(cancel))
        return self.port

    async def _close_on(self, cancel: asyncio.Event) -> None:
        await cancel.wait()
        logger.debug("Cancel requested; stopping artifact server")
        await self.close()

    async def close(self) -> None:
        """Stop accepting connections and release the port."""
        if self._task is None:
            return
        self._server.should_exit = True
        await self.wait_closed()
        if self._watcher is not None and self._watcher is not asyncio.current_task():
            self._watcher.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.shield(self._task)
