from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from starlette.responses import StreamingResponse

from ingest.scheduler import HazardMonitor
from normalize.normalize import utc_now_iso
from realtime.bus import Event, EventBus


logger = logging.getLogger(__name__)

router = APIRouter()

HEARTBEAT_SECONDS = 15


def format_event(event: Event) -> str:
    data = json.dumps(event.data, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event.type}\ndata: {data}\n\n"


@router.get("/sse")
async def sse(request: Request) -> StreamingResponse:
    bus: EventBus = request.app.state.bus
    monitor: HazardMonitor = request.app.state.monitor
    queue = await bus.subscribe()
    logger.debug("sse client connected, %d subscribers", bus.subscriber_count)

    async def event_stream():
        try:
            yield format_event(Event(type="snapshot", data=monitor.current_snapshot()))
            while True:
                if await request.is_disconnected():
                    return
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    yield format_event(Event(type="heartbeat", data={"ts": utc_now_iso()}))
                    continue
                yield format_event(event)
        finally:
            await bus.unsubscribe(queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
