"""Destination naming and matching for bus events."""

from ..matching import ant_match
from ..models import RemoteEvent

ALL_SERVICES = "**"


class Destination:
    """Builds destination patterns from service names."""

    @staticmethod
    def get_destination(service: str | None = None) -> str:
        """``None`` targets every node, ``app`` targets all instances of app."""
        path = service or ALL_SERVICES
        if path != ALL_SERVICES:
            if path.count(":") <= 1 and not path.lower().endswith(":**"):
                path = f"{path}:**"
        return path


class ServiceMatcher:
    """Decides whether an event came from, or is meant for, a given bus id."""

    def __init__(self, bus_id: str):
        self._bus_id = bus_id

    @property
    def bus_id(self) -> str:
        return self._bus_id

    def is_from_self(self, event: RemoteEvent) -> bool:
        return event.origin_service == self._bus_id

    def is_for_self(self, event: RemoteEvent) -> bool:
        destination = event.destination_service
        if not destination or destination == ALL_SERVICES:
            return True
        return ant_match(destination, self._bus_id, separator=":")
