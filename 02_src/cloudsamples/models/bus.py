"""Bus event data models."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime


@dataclass
class Notification:
    """A custom notification carried by NotificationRemoteEvent."""

    id: str
    timestamp: int  # epoch milliseconds
    message: str


@dataclass
class RemoteEvent:
    """An event travelling between bus nodes."""

    origin_service: str = ""
    destination_service: str = "**"
    id: str = ""
    timestamp: datetime | None = None

    @property
    def type(self) -> str:
        return type(self).__name__

    def payload(self) -> dict:
        """Type-specific fields, JSON serialisable."""
        base = {f.name for f in fields(RemoteEvent)}
        return {k: v for k, v in asdict(self).items() if k not in base}


@dataclass
class RefreshRemoteEvent(RemoteEvent):
    """Asks destination nodes to re-read their configuration."""


@dataclass
class EnvironmentChangeRemoteEvent(RemoteEvent):
    """Asks destination nodes to set the given properties."""

    values: dict[str, str] = field(default_factory=dict)


@dataclass
class NotificationRemoteEvent(RemoteEvent):
    """Custom event broadcasting a Notification."""

    notification: Notification | None = None


@dataclass
class AckRemoteEvent(RemoteEvent):
    """Acknowledgement a node sends back after handling a remote event."""

    ack_id: str = ""
    ack_destination_service: str = ""
    event: str = ""  # type name of the acknowledged event


EVENT_TYPES: dict[str, type[RemoteEvent]] = {
    cls.__name__: cls
    for cls in (
        RefreshRemoteEvent,
        EnvironmentChangeRemoteEvent,
        NotificationRemoteEvent,
        AckRemoteEvent,
    )
}


def event_from_payload(
    event_type: str,
    payload: dict,
    *,
    id: str,
    origin_service: str,
    destination_service: str,
    timestamp: datetime | None,
) -> RemoteEvent:
    """Rebuild a RemoteEvent from its stored parts."""
    cls = EVENT_TYPES.get(event_type)
    if cls is None:
        raise ValueError(f"Unknown bus event type: {event_type}")

    kwargs = dict(payload)
    if cls is NotificationRemoteEvent and kwargs.get("notification"):
        kwargs["notification"] = Notification(**kwargs["notification"])

    return cls(
        id=id,
        origin_service=origin_service,
        destination_service=destination_service,
        timestamp=timestamp,
        **kwargs,
    )
