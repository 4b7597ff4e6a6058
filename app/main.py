from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.proxy import router as proxy_router
from app.settings import Settings
from health.health import HealthRegistry
from ingest.scheduler import HazardMonitor
from realtime.bus import EventBus
from realtime.sse import router as sse_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    logging.basicConfig(level=settings.log_level.upper())
    bus = EventBus()
    health = HealthRegistry()

    async with httpx.AsyncClient(follow_redirects=True) as client:
        monitor = HazardMonitor(settings, client, bus=bus, health=health)
        app.state.settings = settings
        app.state.client = client
        app.state.bus = bus
        app.state.health = health
        app.state.monitor = monitor

        await monitor.start()
        try:
            yield
        finally:
            await monitor.stop()


app = FastAPI(lifespan=lifespan)
app.include_router(sse_router)
app.include_router(proxy_router)


@app.get("/api/snapshot")
def snapshot(request: Request) -> JSONResponse:
    monitor: HazardMonitor = request.app.state.monitor
    return JSONResponse(monitor.current_snapshot())


@app.get("/api/topics/{topic}")
def topic(request: Request, topic: str) -> JSONResponse:
    monitor: HazardMonitor = request.app.state.monitor
    result = monitor.topic_result(topic)
    if result is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return JSONResponse(result.to_dict())


@app.get("/api/most-recent")
def most_recent(request: Request) -> JSONResponse:
    monitor: HazardMonitor = request.app.state.monitor
    event = monitor.most_recent()
    return JSONResponse(event.to_dict() if event is not None else None)


@app.post("/api/refresh")
async def refresh(request: Request) -> JSONResponse:
    monitor: HazardMonitor = request.app.state.monitor
    if not monitor.request_refresh():
        return JSONResponse({"started": False}, status_code=409)
    return JSONResponse({"started": True}, status_code=202)


@app.get("/api/sources")
def sources(request: Request) -> JSONResponse:
    health: HealthRegistry = request.app.state.health
    return JSONResponse(health.snapshot())
