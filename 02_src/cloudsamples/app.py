"""Application bootstrap and lifecycle management."""

import os
from typing import Mapping, Protocol

from .bus import BusBroker, BusNode, EventRecorder
from .config import APP_NAME_PROPERTY, DEFAULT_APP_NAME, resolve_db_path
from .environment import Environment, log_changed_keys
from .gateway import ServiceRegistry
from .logging_config import get_logger
from .observation import (
    MeterObservationHandler,
    MeterRegistry,
    ObservationRegistry,
    Tracer,
    TracingObservationHandler,
)
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)

# Shared by every Application of the process unless one is passed in
DEFAULT_BROKER = BusBroker()
DEFAULT_SERVICE_REGISTRY = ServiceRegistry()


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Container wiring the components one sample service needs."""

    def __init__(
        self,
        db_path: str | None = None,
        properties: Mapping[str, object] | None = None,
        environ: Mapping[str, str] | None = None,
        broker: BusBroker | None = None,
        service_registry: ServiceRegistry | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        self.environment = Environment(defaults=properties, environ=environ)
        self.environment.add_listener(log_changed_keys(self.environment))
        self.broker = broker or DEFAULT_BROKER
        self.service_registry = service_registry or DEFAULT_SERVICE_REGISTRY

        self.meter_registry = MeterRegistry()
        self.tracer = Tracer(service_name=self.name)
        self.observation_registry = ObservationRegistry(
            [
                MeterObservationHandler(self.meter_registry),
                TracingObservationHandler(self.tracer),
            ]
        )

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._bus: BusNode | None = None
        self._recorder: EventRecorder | None = None

    @property
    def name(self) -> str:
        return str(self.environment.get_property(APP_NAME_PROPERTY, DEFAULT_APP_NAME))

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application %s", self.name)

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Bus node (depends on Environment, Storage, Tracker)
        self._bus = BusNode(
            environment=self.environment,
            broker=self.broker,
            storage=self._storage,
            tracker=self._tracker,
        )
        self._recorder = EventRecorder(self._bus.matcher)
        self._bus.add_listener(self._recorder)
        self._bus.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._bus:
            self._bus.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        self.tracer.drain()
        self.meter_registry.clear()

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def tracker(self) -> ITracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def bus(self) -> BusNode:
        """Get bus node instance."""
        if not self._bus:
            raise RuntimeError("Application not started")
        return self._bus

    @property
    def recorder(self) -> EventRecorder:
        """Get the bus event recorder."""
        if not self._recorder:
            raise RuntimeError("Application not started")
        return self._recorder
