"""Observability API routes."""

import asyncio
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel

from ...app import Application
from ...observation import DemoTarget, export_spans


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime


class BusEventResponse(BaseModel):
    """Response model for a stored bus event."""

    id: str
    type: str
    origin_service: str
    destination_service: str
    payload: dict[str, Any]
    timestamp: datetime | None


class DemoRunResponse(BaseModel):
    """Response model for a demo observation run."""

    spans: int


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="ISO timestamp filter"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(None, description="Filter by event type"),
        actor: str | None = Query(None, description="Filter by actor"),
    ) -> list[dict]:
        """Get trace events with optional filters."""
        after_dt = None
        if after:
            try:
                after_dt = datetime.fromisoformat(after)
            except ValueError:
                raise HTTPException(
                    status_code=400, detail="Invalid after timestamp format"
                )

        try:
            events = await app.storage.get_trace_events(
                after=after_dt,
                event_types=[event_type] if event_type else None,
                actor=actor,
                limit=limit,
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [
            {
                "id": e.id,
                "event_type": e.event_type,
                "actor": e.actor,
                "data": e.data,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in events
        ]

    @router.get("/bus-events", response_model=list[BusEventResponse])
    async def get_bus_events(
        event_type: str | None = Query(None, description="Filter by event type"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get bus events published by this node, newest first."""
        try:
            events = await app.storage.get_bus_events(event_type=event_type, limit=limit)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [
            {
                "id": e.id,
                "type": e.type,
                "origin_service": e.origin_service,
                "destination_service": e.destination_service,
                "payload": e.payload(),
                "timestamp": e.timestamp,
            }
            for e in events
        ]

    @router.post("/demo/method-a", response_model=DemoRunResponse)
    async def run_demo(pause: bool = Query(True, description="Sleep like real work")) -> dict:
        """Run DemoTarget.method_a under observation and store its spans."""
        target = DemoTarget(
            registry=app.observation_registry,
            pause=None if pause else (lambda seconds: None),
        )
        await asyncio.to_thread(target.method_a)
        exported = await export_spans(app.tracer, app.tracker)
        return {"spans": exported}

    @router.get("/metrics")
    async def get_metrics() -> list[dict]:
        """Snapshot of observation meters."""
        return app.meter_registry.snapshot()

    @router.get("/prometheus")
    async def get_prometheus() -> Response:
        """Observation meters in the Prometheus text format."""
        return Response(content=app.meter_registry.scrape(), media_type=CONTENT_TYPE_LATEST)

    return router
