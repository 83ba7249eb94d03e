# controller/api/v1/events.py
#
# Server-sent events for object deletions (TTL expiry, limit pruning, or API
# deletes). Best-effort: slow subscribers lose messages, publishing never fails.
from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from domain.retention.types import KIND_BUILD, KIND_BUILDRUN, Event, EventType

router = APIRouter()

_SUBSCRIBERS: List[asyncio.Queue] = []

# Loop that owns the subscriber queues (publishing may come from a threadpool).
_MAIN_LOOP: Optional[asyncio.AbstractEventLoop] = None

_KEEPALIVE_INTERVAL_S = 15.0

_DELETED_EVENT = {
    KIND_BUILD: "build.deleted",
    KIND_BUILDRUN: "buildrun.deleted",
}


def _sse_format(event_type: str, data: Dict[str, Any]) -> str:
    payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event_type}\ndata: {payload}\n\n"


def _broadcast(msg: str) -> None:
    for q in list(_SUBSCRIBERS):
        try:
            q.put_nowait(msg)
        except asyncio.QueueFull:
            pass


def set_main_loop(loop: Optional[asyncio.AbstractEventLoop]) -> None:
    global _MAIN_LOOP
    _MAIN_LOOP = loop


def publish_event(event_type: str, data: Dict[str, Any]) -> None:
    """
    Publish an SSE event to all connected clients.
    Safe to call from the loop thread or from sync handlers in the threadpool.
    """
    if not _SUBSCRIBERS:
        return

    msg = _sse_format(event_type, data)

    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None

    if running is not None and (_MAIN_LOOP is None or running is _MAIN_LOOP):
        _broadcast(msg)
        return

    if _MAIN_LOOP is None or _MAIN_LOOP.is_closed():
        return
    _MAIN_LOOP.call_soon_threadsafe(_broadcast, msg)


def on_store_event(event: Event) -> None:
    """Store listener: turn deletions into SSE events."""
    if event.type != EventType.DELETE or event.old is None:
        return
    event_type = _DELETED_EVENT.get(event.kind)
    if event_type is None:
        return
    publish_event(
        event_type,
        {"namespace": event.old.namespace, "name": event.old.name, "ts": time.time()},
    )


@router.get("/events")
async def sse_events(request: Request) -> StreamingResponse:
    """SSE stream of build.deleted / buildrun.deleted plus keepalive comments."""
    if _MAIN_LOOP is None:
        set_main_loop(asyncio.get_running_loop())

    q: asyncio.Queue = asyncio.Queue(maxsize=200)
    _SUBSCRIBERS.append(q)

    async def event_generator():
        yield _sse_format("hello", {"ts": time.time()})
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    msg = await asyncio.wait_for(q.get(), timeout=_KEEPALIVE_INTERVAL_S)
                    yield msg
                except asyncio.TimeoutError:
                    # SSE ignores lines starting with ':'
                    yield f": keepalive {int(time.time())}\n\n"
        finally:
            if q in _SUBSCRIBERS:
                _SUBSCRIBERS.remove(q)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
