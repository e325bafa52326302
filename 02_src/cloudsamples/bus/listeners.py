"""Bus listeners."""

from collections import deque

from ..logging_config import get_logger
from ..models import (
    AckRemoteEvent,
    EnvironmentChangeRemoteEvent,
    NotificationRemoteEvent,
    RemoteEvent,
)
from .matcher import ServiceMatcher

logger = get_logger(__name__)


def describe_event(event: RemoteEvent, from_self: bool) -> str:
    """Render an event as the multi-line block written to the log."""
    lines = [
        "=== Sent To Bus ===" if from_self else "=== Received From Bus ===",
        f"ID: {event.id}",
        f"From: {event.origin_service}",
        f"To: {event.destination_service}",
        f"Type: {event.type}",
    ]

    if isinstance(event, AckRemoteEvent):
        lines.append(f"ACK for EventID: {event.ack_id}")
        lines.append(f"ACK for EventType: {event.event}")
        lines.append(f"ACK for EventDestinationAddress: {event.ack_destination_service}")
    elif isinstance(event, EnvironmentChangeRemoteEvent):
        lines.append("--- properties changes ---")
        for key, value in event.values.items():
            lines.append(f"{key}: {value}")
    elif isinstance(event, NotificationRemoteEvent) and event.notification:
        lines.append(f"Notification ID: {event.notification.id}")
        lines.append(f"Notification Timestamp: {event.notification.timestamp}")
        lines.append(f"Notification Message: {event.notification.message}")

    return "\n".join(lines)


class EventRecorder:
    """Logs every event a node sends or receives."""

    def __init__(self, matcher: ServiceMatcher):
        self._matcher = matcher
        self.recorded: deque[str] = deque(maxlen=100)

    async def __call__(self, event: RemoteEvent) -> None:
        text = describe_event(event, self._matcher.is_from_self(event))
        self.recorded.append(text)
        logger.info(text)
