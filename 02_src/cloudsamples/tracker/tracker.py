"""Tracker: turns bus traffic and finished spans into stored TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..models import TraceEvent
from ..storage import IStorage


class ITracker(Protocol):
    """Creating TraceEvents through direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> TraceEvent:
        """Create TraceEvent, save it to Storage and return it."""
        ...


class Tracker:
    """Stamps and stores TraceEvents; callers decide what to track."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def track(self, event_type: str, actor: str, data: dict) -> TraceEvent:
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        await self._storage.save_trace_event(trace_event)
        return trace_event
