"""Bus module."""

from .bus import (
    BusBroker,
    BusListener,
    BusNode,
    BusProperties,
    IBusNode,
    default_bus_id,
)
from .listeners import EventRecorder, describe_event
from .matcher import Destination, ServiceMatcher

__all__ = [
    "BusBroker",
    "BusListener",
    "BusNode",
    "BusProperties",
    "Destination",
    "EventRecorder",
    "IBusNode",
    "ServiceMatcher",
    "default_bus_id",
    "describe_event",
]
