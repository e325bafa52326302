"""Echo routes."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ...config import APP_NAME_PROPERTY
from ...environment import Environment


def create_echo_router(environment: Environment) -> APIRouter:
    """Create router answering with the configured application name."""
    router = APIRouter(tags=["echo"])

    @router.get("/echoAppName", response_class=PlainTextResponse)
    async def echo_app_name() -> str:
        """Return spring.application.name of this instance."""
        return str(environment.get_property(APP_NAME_PROPERTY, ""))

    return router
