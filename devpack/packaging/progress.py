"""Aggregate progress for concurrently packing targets.

Tasks never log progress themselves. Each one puts a `CompletionEvent`
on the coordinator's queue when it finishes and a single consumer task
owns the counter and writes every progress line:

    async with ProgressCoordinator(total=len(targets)) as progress:
        ...
        progress.report(CompletionEvent(label="darwin-arm64", ok=True))
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

RECENT_LABELS = 3


@dataclass(frozen=True)
class CompletionEvent:
    label: str
    ok: bool


class ProgressCoordinator:
    def __init__(self, total: int, enabled: bool = True, recent: int = RECENT_LABELS):
        self.total = total
        self.enabled = enabled
        self.completed = 0
        self.failed = 0
        self.recent: deque[str] = deque(maxlen=recent)
        self._queue: asyncio.Queue[Optional[CompletionEvent]] = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ProgressCoordinator":
        self._consumer = asyncio.create_task(self._consume())
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._queue.put_nowait(None)
        if self._consumer is not None:
            await self._consumer

    def report(self, event: CompletionEvent) -> None:
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            self._apply(event)

    def _apply(self, event: CompletionEvent) -> None:
        self.completed += 1
        if not event.ok:
            self.failed += 1
        self.recent.append(event.label if event.ok else f"{event.label} (failed)")
        level = logging.INFO if self.enabled else logging.DEBUG
        logger.log(level, "%s", self.render())

    def render(self) -> str:
        return f"Packed {self.completed}/{self.total} targets (last: {', '.join(self.recent)})"
