"""In-process message bus connecting sample nodes."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, ClassVar, Protocol

from ..config import (
    APP_NAME_PROPERTY,
    DEFAULT_APP_NAME,
    DEFAULT_SERVER_PORT,
    SERVER_PORT_PROPERTY,
)
from ..environment import ConfigurationProperties, Environment
from ..logging_config import get_logger
from ..models import (
    AckRemoteEvent,
    EnvironmentChangeRemoteEvent,
    RefreshRemoteEvent,
    RemoteEvent,
)
from ..storage import IStorage
from ..tracker import ITracker
from .matcher import Destination, ServiceMatcher

logger = get_logger(__name__)

DEFAULT_DESTINATION = "springCloudBus"

BusListener = Callable[[RemoteEvent], Awaitable[None]]


class BusProperties(ConfigurationProperties):
    """Bus settings, prefix ``spring.cloud.bus``."""

    prefix: ClassVar[str] = "spring.cloud.bus"

    id: str | None = None
    destination: str = DEFAULT_DESTINATION
    ack_enabled: bool = True
    ack_destination_service: str | None = None
    trace_enabled: bool = False


def default_bus_id(environment: Environment) -> str:
    """``<app-name>:<port>:<random>`` unless spring.cloud.bus.id is set."""
    configured = environment.properties(BusProperties).id
    if configured:
        return configured
    name = environment.get_property(APP_NAME_PROPERTY, DEFAULT_APP_NAME)
    port = environment.get_property(SERVER_PORT_PROPERTY, DEFAULT_SERVER_PORT)
    return f"{name}:{port}:{uuid.uuid4().hex}"


class BusBroker:
    """Fan-out destinations; a node joins the one named by spring.cloud.bus.destination."""

    def __init__(self):
        self._destinations: dict[str, list["BusNode"]] = {}

    def attach(self, node: "BusNode", destination: str = DEFAULT_DESTINATION) -> None:
        nodes = self._destinations.setdefault(destination, [])
        if node not in nodes:
            nodes.append(node)

    def detach(self, node: "BusNode") -> None:
        for nodes in self._destinations.values():
            if node in nodes:
                nodes.remove(node)

    @property
    def nodes(self) -> list["BusNode"]:
        return [node for nodes in self._destinations.values() for node in nodes]

    def nodes_of(self, destination: str) -> list["BusNode"]:
        return list(self._destinations.get(destination, []))

    async def send(self, event: RemoteEvent, destination: str = DEFAULT_DESTINATION) -> None:
        """Deliver the event to every node of ``destination``, the sender included."""
        nodes = self.nodes_of(destination)
        results = await asyncio.gather(
            *[node.receive(event) for node in nodes],
            return_exceptions=True,
        )
        for node, result in zip(nodes, results):
            if isinstance(result, Exception):
                logger.error("Error delivering %s to %s: %s", event.type, node.id, result)


class IBusNode(Protocol):
    """One participant of the bus."""

    @property
    def id(self) -> str:
        """Bus id of this node."""
        ...

    def add_listener(self, listener: BusListener) -> None:
        """Subscribe to events handled by this node."""
        ...

    async def publish(self, event: RemoteEvent) -> RemoteEvent:
        """Publish locally and send to the broker."""
        ...


class BusNode:
    """Bus participant: applies refresh and environment events, sends acks."""

    def __init__(
        self,
        environment: Environment,
        broker: BusBroker,
        storage: IStorage | None = None,
        tracker: ITracker | None = None,
        bus_id: str | None = None,
    ):
        self._environment = environment
        self._broker = broker
        self._storage = storage
        self._tracker = tracker
        self._matcher = ServiceMatcher(bus_id or default_bus_id(environment))
        self._listeners: list[BusListener] = []
        self._bus_destination = DEFAULT_DESTINATION

    @property
    def id(self) -> str:
        return self._matcher.bus_id

    @property
    def matcher(self) -> ServiceMatcher:
        return self._matcher

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def properties(self) -> BusProperties:
        return self._environment.properties(BusProperties)

    def destination(self, service: str | None = None) -> str:
        return Destination.get_destination(service)

    def start(self) -> None:
        """Attach to the broker destination named by spring.cloud.bus.destination."""
        self._bus_destination = self.properties.destination
        self._broker.attach(self, self._bus_destination)
        logger.info(
            "=== Bus Info === ID: %s, Destination: %s",
            self.id,
            self._bus_destination,
        )

    def stop(self) -> None:
        """Detach from the broker."""
        self._broker.detach(self)

    def add_listener(self, listener: BusListener) -> None:
        """Subscribe to events handled by this node."""
        self._listeners.append(listener)

    async def publish(self, event: RemoteEvent) -> RemoteEvent:
        """Apply locally, then persist and send to the broker.

        When the local apply fails (PropertyBindingError for unbindable
        values) nothing is stored or sent.
        """
        if not event.id:
            event.id = str(uuid.uuid4())
        if not event.origin_service:
            event.origin_service = self.id
        if not event.destination_service:
            event.destination_service = self.destination(None)
        if event.timestamp is None:
            event.timestamp = datetime.now(timezone.utc)

        await self._dispatch(event)

        if self._storage:
            await self._storage.save_bus_event(event)
        if self.properties.trace_enabled:
            await self._trace(event, "bus_event_sent")

        await self._broker.send(event, self._bus_destination)
        return event

    async def receive(self, event: RemoteEvent) -> None:
        """Handle an event arriving from the broker."""
        from_self = self._matcher.is_from_self(event)
        for_self = self._matcher.is_for_self(event)
        props = self.properties

        if isinstance(event, AckRemoteEvent):
            if props.trace_enabled and not from_self and for_self:
                await self._notify(event)
            return

        if for_self:
            # Own events were dispatched on publish
            if not from_self:
                await self._dispatch(event)
            if props.ack_enabled:
                ack = AckRemoteEvent(
                    id=str(uuid.uuid4()),
                    origin_service=self.id,
                    destination_service=self.destination(props.ack_destination_service),
                    timestamp=datetime.now(timezone.utc),
                    ack_id=event.id,
                    ack_destination_service=event.destination_service,
                    event=event.type,
                )
                await self._broker.send(ack, self._bus_destination)
                # The acknowledging node always sees its own ack
                await self._notify(ack)

        if props.trace_enabled:
            await self._trace(event, "bus_event_received")

    async def _dispatch(self, event: RemoteEvent) -> None:
        if self._matcher.is_for_self(event):
            if isinstance(event, RefreshRemoteEvent):
                keys = self._environment.refresh()
                logger.info("Received remote refresh request. Keys refreshed %s", sorted(keys))
            elif isinstance(event, EnvironmentChangeRemoteEvent):
                self._environment.set_properties(event.values)
                logger.info("Received remote environment change request. Keys/values to update %s", event.values)
        await self._notify(event)

    async def _notify(self, event: RemoteEvent) -> None:
        if not self._listeners:
            return
        results = await asyncio.gather(
            *[listener(event) for listener in self._listeners],
            return_exceptions=True,
        )
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error("Error in bus listener %s: %s", i, result)

    async def _trace(self, event: RemoteEvent, event_type: str) -> None:
        logger.info(
            "=== A remote event was found === ID: %s, Origin: %s, Destination: %s, Type: %s",
            event.id,
            event.origin_service,
            event.destination_service,
            event.type,
        )
        if self._tracker:
            await self._tracker.track(
                event_type=event_type,
                actor=self.id,
                data={
                    "id": event.id,
                    "origin": event.origin_service,
                    "destination": event.destination_service,
                    "type": event.type,
                },
            )
