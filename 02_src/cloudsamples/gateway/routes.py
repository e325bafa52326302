"""Route definitions, predicates, filters and the fluent route builder."""

import re
from dataclasses import dataclass, field, replace
from typing import Callable, Protocol

from ..matching import ant_match


@dataclass
class GatewayRequest:
    """The parts of an incoming request the gateway routes on."""

    method: str
    path: str
    host: str = ""
    query: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class GatewayResponse:
    """What the gateway hands back to the web layer."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    media_type: str | None = None


class Predicate(Protocol):
    def __call__(self, request: GatewayRequest) -> bool: ...


class Filter(Protocol):
    def __call__(self, request: GatewayRequest) -> GatewayRequest: ...


class PathPredicate:
    """Matches the request path against ant patterns such as ``/foo/**``."""

    def __init__(self, *patterns: str):
        self.patterns = patterns

    def __call__(self, request: GatewayRequest) -> bool:
        return any(ant_match(p, request.path) for p in self.patterns)

    def __repr__(self) -> str:
        return f"Paths: {list(self.patterns)}"


class HostPredicate:
    """Matches the Host header (port ignored) against patterns like ``*.myhost.org``."""

    def __init__(self, *patterns: str):
        self.patterns = patterns

    def __call__(self, request: GatewayRequest) -> bool:
        host = request.host.split(":", 1)[0].lower()
        if not host:
            return False
        return any(ant_match(p.lower(), host, separator=".") for p in self.patterns)

    def __repr__(self) -> str:
        return f"Hosts: {list(self.patterns)}"


class RewritePathFilter:
    """Regex path rewrite; ``${name}`` in the replacement refers to a named group."""

    def __init__(self, regexp: str, replacement: str):
        # Accept (?<name>...) groups as well as Python's (?P<name>...)
        self.regexp = re.compile(re.sub(r"\(\?<(?=[A-Za-z_])", "(?P<", regexp))
        self.replacement = re.sub(r"\$\{(\w+)\}", r"\\g<\1>", replacement)

    def __call__(self, request: GatewayRequest) -> GatewayRequest:
        return replace(request, path=self.regexp.sub(self.replacement, request.path))


class StripPrefixFilter:
    """Drops the first ``parts`` path segments."""

    def __init__(self, parts: int):
        if parts < 0:
            raise ValueError("parts must not be negative")
        self.parts = parts

    def __call__(self, request: GatewayRequest) -> GatewayRequest:
        segments = [s for s in request.path.split("/") if s]
        stripped = "/" + "/".join(segments[self.parts:])
        if request.path.endswith("/") and len(segments) > self.parts:
            stripped += "/"
        return replace(request, path=stripped)


@dataclass
class CircuitBreakerSpec:
    """Name of the breaker guarding a route and its optional fallback."""

    name: str
    fallback_uri: str | None = None


@dataclass
class Route:
    """A route: predicates select it, filters rewrite the request, uri targets it."""

    id: str
    uri: str
    predicates: list[Predicate] = field(default_factory=list)
    filters: list[Filter] = field(default_factory=list)
    order: int = 0
    circuit_breaker: CircuitBreakerSpec | None = None

    def matches(self, request: GatewayRequest) -> bool:
        return bool(self.predicates) and all(p(request) for p in self.predicates)

    def apply_filters(self, request: GatewayRequest) -> GatewayRequest:
        for f in self.filters:
            request = f(request)
        return request


class RouteSpec:
    """Fluent builder for a single route."""

    def __init__(self, route_id: str):
        self._id = route_id
        self._predicates: list[Predicate] = []
        self._filters: list[Filter] = []
        self._order = 0
        self._circuit_breaker: CircuitBreakerSpec | None = None

    def path(self, *patterns: str) -> "RouteSpec":
        self._predicates.append(PathPredicate(*patterns))
        return self

    def host(self, *patterns: str) -> "RouteSpec":
        self._predicates.append(HostPredicate(*patterns))
        return self

    def predicate(self, predicate: Predicate) -> "RouteSpec":
        self._predicates.append(predicate)
        return self

    def rewrite_path(self, regexp: str, replacement: str) -> "RouteSpec":
        self._filters.append(RewritePathFilter(regexp, replacement))
        return self

    def strip_prefix(self, parts: int) -> "RouteSpec":
        self._filters.append(StripPrefixFilter(parts))
        return self

    def circuit_breaker(self, name: str, fallback_uri: str | None = None) -> "RouteSpec":
        self._circuit_breaker = CircuitBreakerSpec(name=name, fallback_uri=fallback_uri)
        return self

    def order(self, order: int) -> "RouteSpec":
        self._order = order
        return self

    def uri(self, uri: str) -> Route:
        return Route(
            id=self._id,
            uri=uri,
            predicates=list(self._predicates),
            filters=list(self._filters),
            order=self._order,
            circuit_breaker=self._circuit_breaker,
        )


class IRouteLocator(Protocol):
    def get_routes(self) -> list[Route]:
        """Routes in evaluation order."""
        ...


class RouteLocator:
    """Fixed list of routes ordered by ``order`` (stable)."""

    def __init__(self, routes: list[Route]):
        self._routes = sorted(routes, key=lambda r: r.order)

    def get_routes(self) -> list[Route]:
        return list(self._routes)


class RouteBuilder:
    """``RouteBuilder().route("id", lambda r: r.path("/get").uri(...)).build()``."""

    def __init__(self):
        self._routes: list[Route] = []

    def route(self, route_id: str, fn: Callable[[RouteSpec], Route]) -> "RouteBuilder":
        self._routes.append(fn(RouteSpec(route_id)))
        return self

    def build(self) -> RouteLocator:
        return RouteLocator(self._routes)
