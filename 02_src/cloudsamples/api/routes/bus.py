"""Bus routes: bus actuator endpoints, notifications and the order switch."""

import time
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ...app import Application
from ...environment import Environment, OrderProperties, PropertyBindingError
from ...logging_config import get_logger
from ...models import (
    EnvironmentChangeRemoteEvent,
    Notification,
    NotificationRemoteEvent,
    RefreshRemoteEvent,
)

logger = get_logger(__name__)


class EnvChangeRequest(BaseModel):
    """Request model for /actuator/busenv."""

    name: str
    value: Any


class PropertyResponse(BaseModel):
    """Response model for a single property."""

    name: str
    value: Any


def create_bus_router(app: Application) -> APIRouter:
    """Create router exposing bus refresh, bus env and custom notifications."""
    router = APIRouter(tags=["bus"])

    @router.post("/actuator/busrefresh", status_code=status.HTTP_204_NO_CONTENT)
    @router.post("/actuator/busrefresh/{destination}", status_code=status.HTTP_204_NO_CONTENT)
    async def bus_refresh(destination: str | None = None) -> Response:
        """Ask every (or the selected) node to refresh its configuration."""
        bus = app.bus
        await bus.publish(
            RefreshRemoteEvent(destination_service=bus.destination(destination))
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/actuator/busenv", status_code=status.HTTP_204_NO_CONTENT)
    @router.post("/actuator/busenv/{destination}", status_code=status.HTTP_204_NO_CONTENT)
    async def bus_env(request: EnvChangeRequest, destination: str | None = None) -> Response:
        """Ask every (or the selected) node to set one property."""
        value = request.value
        if isinstance(value, bool):
            value = str(value).lower()
        bus = app.bus
        try:
            await bus.publish(
                EnvironmentChangeRemoteEvent(
                    destination_service=bus.destination(destination),
                    values={request.name: str(value)},
                )
            )
        except PropertyBindingError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/pushNotification")
    async def push_notification(request: Request) -> Response:
        """Broadcast the plain-text body as a notification to every node."""
        message = (await request.body()).decode("utf-8")
        notification = Notification(
            id=str(uuid.uuid4()),
            timestamp=int(time.time() * 1000),
            message=message,
        )
        bus = app.bus
        await bus.publish(
            NotificationRemoteEvent(
                destination_service=bus.destination(None),
                notification=notification,
            )
        )
        return Response(status_code=status.HTTP_200_OK)

    return router


def create_env_router(environment: Environment) -> APIRouter:
    """Create router reading single properties."""
    router = APIRouter(prefix="/actuator", tags=["bus"])

    @router.get("/env/{name}", response_model=PropertyResponse)
    async def get_property(name: str) -> dict:
        """Resolve a property through the environment."""
        if not environment.contains_property(name):
            raise HTTPException(status_code=404, detail=f"Property {name} not found")
        return {"name": name, "value": environment.get_property(name)}

    return router


def create_order_router(environment: Environment) -> APIRouter:
    """Create router whose behaviour follows order.create-enabled."""
    router = APIRouter(prefix="/order", tags=["order"])
    # Bound up front so bus changes to order.* are validated
    environment.register(OrderProperties)

    @router.post("/create", response_class=PlainTextResponse)
    async def create_order(name: str | None = Query(None)) -> str:
        """Create an order when enabled; errors come back as plain text."""
        if name is None:
            return "Required request parameter 'name' is not present"
        if not name.strip():
            return "name is blank!"

        properties = environment.properties(OrderProperties)
        if not properties.is_create_enabled():
            logger.warning("order.create-enabled = %s", properties.create_enabled)
            return "Creating order is disabled!"

        logger.info("Create %s ...", name)
        return f"Success to create {name} order!"

    return router
