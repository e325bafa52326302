"""Core data models for the sample services."""

from .bus import (
    AckRemoteEvent,
    EnvironmentChangeRemoteEvent,
    Notification,
    NotificationRemoteEvent,
    RefreshRemoteEvent,
    RemoteEvent,
    event_from_payload,
)
from .security import UserDetails
from .tracing import TraceEvent

__all__ = [
    # Bus
    "RemoteEvent",
    "RefreshRemoteEvent",
    "EnvironmentChangeRemoteEvent",
    "NotificationRemoteEvent",
    "AckRemoteEvent",
    "Notification",
    "event_from_payload",
    # Security
    "UserDetails",
    # Tracing
    "TraceEvent",
]
