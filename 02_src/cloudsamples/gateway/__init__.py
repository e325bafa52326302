"""Gateway module."""

from .circuit_breaker import (
    CallNotPermittedError,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from .discovery import (
    DiscoveryRouteLocator,
    NoAvailableInstanceError,
    RoundRobinLoadBalancer,
    ServiceInstance,
    ServiceRegistry,
)
from .handler import GatewayHandler
from .routes import (
    GatewayRequest,
    GatewayResponse,
    HostPredicate,
    PathPredicate,
    RewritePathFilter,
    Route,
    RouteBuilder,
    RouteLocator,
    RouteSpec,
    StripPrefixFilter,
)

__all__ = [
    "CallNotPermittedError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "DiscoveryRouteLocator",
    "GatewayHandler",
    "GatewayRequest",
    "GatewayResponse",
    "HostPredicate",
    "NoAvailableInstanceError",
    "PathPredicate",
    "RewritePathFilter",
    "RoundRobinLoadBalancer",
    "Route",
    "RouteBuilder",
    "RouteLocator",
    "RouteSpec",
    "ServiceInstance",
    "ServiceRegistry",
    "StripPrefixFilter",
]
