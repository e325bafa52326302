"""In-memory service registry, round-robin load balancing and discovery routes."""

import itertools
from dataclasses import dataclass

from ..logging_config import get_logger
from .routes import Route, RouteSpec

logger = get_logger(__name__)

LB_SCHEME = "lb://"


@dataclass(frozen=True)
class ServiceInstance:
    """One running instance of a service."""

    service_id: str
    host: str
    port: int
    secure: bool = False

    @property
    def uri(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}"


class NoAvailableInstanceError(Exception):
    """Raised when an lb:// uri names a service without instances."""

    def __init__(self, service_id: str):
        super().__init__(f"Unable to find instance for {service_id}")
        self.service_id = service_id


class ServiceRegistry:
    """Instances per service id, in registration order."""

    def __init__(self):
        self._instances: dict[str, list[ServiceInstance]] = {}

    def register(self, instance: ServiceInstance) -> None:
        instances = self._instances.setdefault(instance.service_id, [])
        if instance not in instances:
            instances.append(instance)
            logger.info("Registered %s at %s", instance.service_id, instance.uri)

    def deregister(self, instance: ServiceInstance) -> None:
        instances = self._instances.get(instance.service_id, [])
        if instance in instances:
            instances.remove(instance)
        if not instances:
            self._instances.pop(instance.service_id, None)

    def get_instances(self, service_id: str) -> list[ServiceInstance]:
        return list(self._instances.get(service_id, []))

    @property
    def services(self) -> list[str]:
        return sorted(self._instances)


class RoundRobinLoadBalancer:
    """Picks instances of a service in turn."""

    def __init__(self, registry: ServiceRegistry):
        self._registry = registry
        self._counters: dict[str, itertools.count] = {}

    def choose(self, service_id: str) -> ServiceInstance:
        instances = self._registry.get_instances(service_id)
        if not instances:
            raise NoAvailableInstanceError(service_id)
        counter = self._counters.setdefault(service_id, itertools.count())
        return instances[next(counter) % len(instances)]

    def resolve(self, uri: str) -> str:
        """Turn ``lb://service`` into a concrete base url, pass others through."""
        if not uri.startswith(LB_SCHEME):
            return uri
        service_id = uri[len(LB_SCHEME):].split("/", 1)[0]
        return self.choose(service_id).uri


class DiscoveryRouteLocator:
    """``/{service}/**`` -> ``lb://{service}`` with the first segment stripped."""

    def __init__(self, registry: ServiceRegistry):
        self._registry = registry

    def get_routes(self) -> list[Route]:
        return [
            RouteSpec(f"discovery_{service}")
            .path(f"/{service}/**")
            .strip_prefix(1)
            .uri(f"{LB_SCHEME}{service}")
            for service in self._registry.services
        ]
