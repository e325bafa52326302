"""Cloud samples: security, gateway, bus and observation services."""

from .app import Application, IApplication
from .bus import BusBroker, BusNode, IBusNode
from .environment import Environment, IEnvironment, OrderProperties
from .models import (
    AckRemoteEvent,
    EnvironmentChangeRemoteEvent,
    Notification,
    NotificationRemoteEvent,
    RefreshRemoteEvent,
    RemoteEvent,
    TraceEvent,
    UserDetails,
)
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "RemoteEvent",
    "RefreshRemoteEvent",
    "EnvironmentChangeRemoteEvent",
    "NotificationRemoteEvent",
    "AckRemoteEvent",
    "Notification",
    "TraceEvent",
    "UserDetails",
    # Components
    "Environment",
    "IEnvironment",
    "OrderProperties",
    "BusBroker",
    "BusNode",
    "IBusNode",
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
]
