"""FastAPI application setup, one factory per sample service."""

import os
import uuid
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

import httpx
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from ..config import (
    APP_NAME_PROPERTY,
    DEFAULT_SERVER_ADDRESS,
    DEFAULT_SERVER_PORT,
    SERVER_ADDRESS_PROPERTY,
    SERVER_PORT_PROPERTY,
    parse_duration,
)
from ..gateway import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    DiscoveryRouteLocator,
    GatewayHandler,
    RouteBuilder,
    RouteLocator,
    ServiceInstance,
)
from ..logging_config import get_logger
from ..models import UserDetails
from ..security import (
    AdminUserProperties,
    InMemoryUserService,
    JwtProperties,
    JwtUtil,
    PasswordEncoder,
    SecurityUserProperties,
    StorageUserService,
)
from .routes import bus, echo, gateway, observability, security

logger = get_logger(__name__)

Hook = Callable[[], Awaitable[None]]

DEFAULT_ROUTE_URI = "http://httpbin.org"
SLOW_COMMAND = "slowcmd"
SLOW_COMMAND_TIMEOUT_KEY = f"resilience4j.timelimiter.instances.{SLOW_COMMAND}.timeout-duration"
DEFAULT_SLOW_COMMAND_TIMEOUT = 2.0  # seconds


def _build_fastapi(
    application: Application,
    title: str,
    routers: list[APIRouter],
    on_startup: list[Hook] | None = None,
    on_shutdown: list[Hook] | None = None,
) -> FastAPI:
    """Wire routers and lifecycle hooks around an Application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        await application.start()
        for hook in on_startup or []:
            await hook()
        yield
        # Shutdown
        for hook in on_shutdown or []:
            await hook()
        await application.stop()

    fastapi_app = FastAPI(
        title=title,
        description=f"{title} sample service",
        version="0.1.0",
        lifespan=lifespan,
    )

    origins = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]
    if origins:
        fastapi_app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    for router in routers:
        fastapi_app.include_router(router)

    fastapi_app.state.application = application
    return fastapi_app


def _default_user(
    application: Application,
    default_roles: list[str],
    encoder: PasswordEncoder | None = None,
    properties_type: type[SecurityUserProperties] = SecurityUserProperties,
) -> UserDetails:
    """Configured user; a generated, logged password when none is set.

    Without an encoder the password is stored as ``{noop}<password>``.
    """
    properties = properties_type.bind(application.environment)
    password = properties.password
    if password is None:
        password = str(uuid.uuid4())
        logger.warning(
            "Using generated security password: %s\n\n"
            "This generated password is for development use only.",
            password,
        )
    return UserDetails(
        username=properties.name,
        password=encoder.encode(password) if encoder else f"{{noop}}{password}",
        roles=properties.roles or list(default_roles),
    )


def build_circuit_breaker_routes(route_uri: str) -> RouteLocator:
    """Path, host, rewrite and circuit-breaker routes against ``route_uri``."""
    logger.info("--- Building routes with circuit breakers ---")
    return (
        RouteBuilder()
        .route("path_route", lambda r: r.path("/get").uri(route_uri))
        .route("host_route", lambda r: r.host("*.myhost.org").uri(route_uri))
        .route(
            "rewrite_route",
            lambda r: r.host("*.rewrite.org")
            .rewrite_path("/foo/(?<segment>.*)", "/${segment}")
            .uri(route_uri),
        )
        # Breaker times out (2s by default) and answers 504
        .route(
            "circuitbreaker_route",
            lambda r: r.host("*.circuitbreaker.org")
            .circuit_breaker(SLOW_COMMAND)
            .uri(route_uri),
        )
        # Same, but the fallback answers instead of the 504
        .route(
            "circuitbreaker_fallback_route",
            lambda r: r.host("*.circuitbreakerfallback.org")
            .circuit_breaker(SLOW_COMMAND, fallback_uri=f"forward:{gateway.FALLBACK_PATH}")
            .uri(route_uri),
        )
        .build()
    )


def create_security_app(application: Application | None = None) -> FastAPI:
    """Basic-auth protected home page with a generated default user."""
    application = application or Application(properties={APP_NAME_PROPERTY: "security"})
    encoder = PasswordEncoder()
    user_service = InMemoryUserService([_default_user(application, [])])

    return _build_fastapi(
        application,
        "Security",
        [
            security.create_security_router(user_service, encoder),
            observability.create_observability_router(application),
        ],
    )


def create_jwt_app(application: Application | None = None) -> FastAPI:
    """JWT login against users stored in the database, plus role-checked info endpoints."""
    application = application or Application(properties={APP_NAME_PROPERTY: "security-jwt"})
    encoder = PasswordEncoder()
    user_service = StorageUserService(lambda: application.storage)
    jwt_util = JwtUtil(JwtProperties.bind(application.environment))
    seeded = [
        _default_user(application, ["USER"], encoder),
        _default_user(application, [], encoder, AdminUserProperties),
    ]

    async def seed_users() -> None:
        for user in seeded:
            if not await user_service.user_exists(user.username):
                await user_service.create_user(user)

    return _build_fastapi(
        application,
        "Security JWT",
        [
            security.create_jwt_router(user_service, encoder, jwt_util),
            observability.create_observability_router(application),
        ],
        on_startup=[seed_users],
    )


def create_gateway_app(
    application: Application | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Gateway with path/host/rewrite routes and a circuit breaker with fallback."""
    application = application or Application(
        properties={APP_NAME_PROPERTY: "gateway-circuitbreaker"}
    )
    route_uri = application.environment.get_property("gateway.route-uri", DEFAULT_ROUTE_URI)

    timeout = parse_duration(
        application.environment.get_property(SLOW_COMMAND_TIMEOUT_KEY, DEFAULT_SLOW_COMMAND_TIMEOUT)
    )
    breakers = CircuitBreakerRegistry()
    logger.info("--- Configuring circuit breaker %s, timeout %ss ---", SLOW_COMMAND, timeout)
    breakers.add_configuration(SLOW_COMMAND, CircuitBreakerConfig(timeout=timeout))

    client = httpx.AsyncClient(transport=transport, timeout=30.0)
    handler = GatewayHandler(
        [build_circuit_breaker_routes(route_uri)],
        client,
        breakers,
        application.service_registry,
    )
    handler.register_forward(gateway.FALLBACK_PATH, gateway.fallback_response)

    return _build_fastapi(
        application,
        "Gateway Circuit Breaker",
        [
            gateway.create_fallback_router(),
            observability.create_observability_router(application),
            # Catch-all goes last
            gateway.create_gateway_router(handler),
        ],
        on_shutdown=[client.aclose],
    )


def create_gateway_nacos_app(
    application: Application | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Gateway routing ``/{service}/**`` to registered instances, plus /echoAppName."""
    application = application or Application(
        properties={APP_NAME_PROPERTY: "gateway-nacos"}
    )
    environment = application.environment
    instance = ServiceInstance(
        service_id=application.name,
        host=str(environment.get_property(SERVER_ADDRESS_PROPERTY, DEFAULT_SERVER_ADDRESS)),
        port=int(environment.get_property(SERVER_PORT_PROPERTY, DEFAULT_SERVER_PORT)),
    )

    client = httpx.AsyncClient(transport=transport, timeout=30.0)
    handler = GatewayHandler(
        [DiscoveryRouteLocator(application.service_registry)],
        client,
        registry=application.service_registry,
    )

    async def register() -> None:
        application.service_registry.register(instance)

    async def deregister() -> None:
        application.service_registry.deregister(instance)

    return _build_fastapi(
        application,
        "Gateway Discovery",
        [
            echo.create_echo_router(environment),
            observability.create_observability_router(application),
            gateway.create_gateway_router(handler),
        ],
        on_startup=[register],
        on_shutdown=[deregister, client.aclose],
    )


def create_bus_node_app(application: Application | None = None) -> FastAPI:
    """Bus node whose order endpoint follows order.create-enabled."""
    application = application or Application(properties={APP_NAME_PROPERTY: "bus-node"})
    return _build_fastapi(
        application,
        "Bus Node",
        [
            bus.create_order_router(application.environment),
            bus.create_bus_router(application),
            bus.create_env_router(application.environment),
            observability.create_observability_router(application),
        ],
    )


def create_bus_manager_app(application: Application | None = None) -> FastAPI:
    """Bus manager pushing refresh, env changes and notifications to nodes."""
    application = application or Application(properties={APP_NAME_PROPERTY: "bus-manager"})
    return _build_fastapi(
        application,
        "Bus Manager",
        [
            bus.create_bus_router(application),
            bus.create_env_router(application.environment),
            observability.create_observability_router(application),
        ],
    )


def create_observation_app(application: Application | None = None) -> FastAPI:
    """Observation demo: runs the observed target, exposes spans and meters."""
    application = application or Application(properties={APP_NAME_PROPERTY: "observation"})
    return _build_fastapi(
        application,
        "Observation",
        [observability.create_observability_router(application)],
    )


SAMPLES: dict[str, Callable[..., FastAPI]] = {
    "security": create_security_app,
    "security-jwt": create_jwt_app,
    "gateway-circuitbreaker": create_gateway_app,
    "gateway-nacos": create_gateway_nacos_app,
    "bus-node": create_bus_node_app,
    "bus-manager": create_bus_manager_app,
    "observation": create_observation_app,
}


def create_fastapi_app(sample: str, application: Application | None = None) -> FastAPI:
    """Create the FastAPI application of the named sample."""
    try:
        factory = SAMPLES[sample]
    except KeyError:
        raise ValueError(f"Unknown sample '{sample}', expected one of {sorted(SAMPLES)}")
    if application is None:
        application = Application(properties={APP_NAME_PROPERTY: sample})
    return factory(application)
