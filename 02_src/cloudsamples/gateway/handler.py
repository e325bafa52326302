"""Gateway request handling: route lookup, filtering, forwarding, fallback."""

import asyncio
from typing import Awaitable, Callable

import httpx

from ..logging_config import get_logger
from .circuit_breaker import CallNotPermittedError, CircuitBreakerRegistry
from .discovery import NoAvailableInstanceError, RoundRobinLoadBalancer, ServiceRegistry
from .routes import GatewayRequest, GatewayResponse, IRouteLocator, Route

logger = get_logger(__name__)

FORWARD_SCHEME = "forward:"

ForwardHandler = Callable[[GatewayRequest], Awaitable[GatewayResponse]]

# Hop-by-hop and length headers are recomputed by the server
_SKIPPED_REQUEST_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}
_SKIPPED_RESPONSE_HEADERS = {
    "content-length",
    "content-encoding",
    "transfer-encoding",
    "connection",
}


def _text(status_code: int, message: str) -> GatewayResponse:
    return GatewayResponse(
        status_code=status_code,
        content=message.encode("utf-8"),
        media_type="text/plain",
    )


class GatewayHandler:
    """Routes a GatewayRequest to its upstream and returns the upstream answer."""

    def __init__(
        self,
        locators: list[IRouteLocator],
        client: httpx.AsyncClient,
        circuit_breakers: CircuitBreakerRegistry | None = None,
        registry: ServiceRegistry | None = None,
    ):
        self._locators = locators
        self._client = client
        self._circuit_breakers = circuit_breakers or CircuitBreakerRegistry()
        self._load_balancer = RoundRobinLoadBalancer(registry or ServiceRegistry())
        self._forwards: dict[str, ForwardHandler] = {}

    @property
    def circuit_breakers(self) -> CircuitBreakerRegistry:
        return self._circuit_breakers

    def register_forward(self, path: str, handler: ForwardHandler) -> None:
        """Make ``forward:<path>`` answer locally with ``handler``."""
        self._forwards[path] = handler

    def routes(self) -> list[Route]:
        return [route for locator in self._locators for route in locator.get_routes()]

    def find_route(self, request: GatewayRequest) -> Route | None:
        for route in self.routes():
            if route.matches(request):
                return route
        return None

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        route = self.find_route(request)
        if route is None:
            return _text(404, "Not Found")

        logger.debug("Route %s matched %s %s", route.id, request.method, request.path)
        filtered = route.apply_filters(request)

        async def send() -> GatewayResponse:
            base = self._load_balancer.resolve(route.uri)
            return await self._forward(base, filtered)

        if route.circuit_breaker is None:
            try:
                return await send()
            except NoAvailableInstanceError as e:
                return _text(503, str(e))
            except httpx.HTTPError as e:
                logger.error("Upstream error on route %s: %s", route.id, e)
                return _text(502, "Bad Gateway")

        guard = route.circuit_breaker
        breaker = self._circuit_breakers.circuit_breaker(guard.name)
        try:
            return await breaker.call(send)
        except (asyncio.TimeoutError, CallNotPermittedError, NoAvailableInstanceError, httpx.HTTPError) as e:
            logger.warning("CircuitBreaker %s tripped on route %s: %r", guard.name, route.id, e)
            if guard.fallback_uri:
                return await self._fallback(guard.fallback_uri, filtered)
            if isinstance(e, asyncio.TimeoutError):
                return _text(504, "Gateway Timeout")
            if isinstance(e, (CallNotPermittedError, NoAvailableInstanceError)):
                return _text(503, "Service Unavailable")
            return _text(502, "Bad Gateway")

    async def _fallback(self, fallback_uri: str, request: GatewayRequest) -> GatewayResponse:
        if not fallback_uri.startswith(FORWARD_SCHEME):
            raise ValueError(f"Unsupported fallback uri: {fallback_uri}")
        path = fallback_uri[len(FORWARD_SCHEME):]
        handler = self._forwards.get(path)
        if handler is None:
            return _text(404, "Not Found")
        return await handler(request)

    async def _forward(self, base: str, request: GatewayRequest) -> GatewayResponse:
        url = base.rstrip("/") + request.path
        if request.query:
            url = f"{url}?{request.query}"
        headers = {
            k: v for k, v in request.headers.items() if k.lower() not in _SKIPPED_REQUEST_HEADERS
        }

        response = await self._client.request(
            request.method,
            url,
            headers=headers,
            content=request.body or None,
        )
        return GatewayResponse(
            status_code=response.status_code,
            content=response.content,
            headers={
                k: v
                for k, v in response.headers.items()
                if k.lower() not in _SKIPPED_RESPONSE_HEADERS
            },
        )
