from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from .models import CancelToken, CatalogEntity, ScanEvent, ScanPreviewItem
from .scan_controller import scan_preview
from ..core.scoring import ScoringService
from ..database.mod_store import ModStore
from ..utils.async_utils import run_blocking


@dataclass(frozen=True)
class ProgressEvent:
    kind: str
    event: Optional[ScanEvent] = None
    result: Optional[Any] = None
    error: Optional[BaseException] = None


def _queue_event(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, event: ScanEvent) -> None:
    loop.call_soon_threadsafe(queue.put_nowait, ProgressEvent(kind=event.kind, event=event))


async def stream_blocking(
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> AsyncIterator[ProgressEvent]:
    """Run ``func(*args, on_event=..., **kwargs)`` in an executor and yield its events.

    The last item is a ``result`` event, or an ``error`` event when ``func``
    raised (cancellation included).
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_event(event: ScanEvent) -> None:
        _queue_event(loop, queue, event)

    task = asyncio.create_task(run_blocking(func, *args, on_event=on_event, **kwargs))

    while True:
        if task.done() and queue.empty():
            break
        try:
            event = await asyncio.wait_for(queue.get(), timeout=0.05)
            yield event
        except asyncio.TimeoutError:
            continue

    exc = task.exception()
    if exc is not None:
        yield ProgressEvent(kind="error", error=exc)
        return
    yield ProgressEvent(kind="result", result=task.result())


async def scan_preview_stream(
    game_id: str,
    root_path: str,
    catalog: Sequence[CatalogEntity],
    scoring: Optional[ScoringService] = None,
    store: Optional[ModStore] = None,
    folder_subset: Optional[Sequence[str]] = None,
    cancel_token: Optional[CancelToken] = None,
) -> AsyncIterator[ProgressEvent]:
    async for event in stream_blocking(
        scan_preview,
        game_id,
        root_path,
        catalog,
        scoring=scoring,
        store=store,
        folder_subset=folder_subset,
        cancel_token=cancel_token,
    ):
        yield event


async def collect_preview(events: AsyncIterator[ProgressEvent]) -> list[ScanPreviewItem]:
    """Drain a preview stream; re-raise its error, return its items."""
    items: list[ScanPreviewItem] = []
    async for event in events:
        if event.kind == "error" and event.error is not None:
            raise event.error
        if event.kind == "result":
            items = list(event.result or [])
    return items
