"""Gateway routes: local fallback endpoint plus the catch-all proxy."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse

from ...gateway import GatewayHandler, GatewayRequest, GatewayResponse

FALLBACK_MESSAGE = "This is a fallback"
FALLBACK_PATH = "/circuitbreakerfallback"

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


async def fallback_response(request: GatewayRequest) -> GatewayResponse:
    """Answer for ``forward:/circuitbreakerfallback``."""
    return GatewayResponse(
        status_code=200,
        content=FALLBACK_MESSAGE.encode("utf-8"),
        media_type="text/plain",
    )


def create_fallback_router() -> APIRouter:
    """Create router with the circuit-breaker fallback endpoint."""
    router = APIRouter(tags=["gateway"])

    @router.api_route(FALLBACK_PATH, methods=ALL_METHODS, response_class=PlainTextResponse)
    async def circuitbreakerfallback() -> str:
        """Fallback used after the breaker trips."""
        return FALLBACK_MESSAGE

    return router


def create_gateway_router(handler: GatewayHandler) -> APIRouter:
    """Create catch-all router handing every other request to the gateway."""
    router = APIRouter(tags=["gateway"])

    @router.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def proxy(request: Request, path: str) -> Response:
        result = await handler.handle(
            GatewayRequest(
                method=request.method,
                path=request.url.path,
                host=request.headers.get("host", ""),
                query=request.url.query,
                headers=dict(request.headers),
                body=await request.body(),
            )
        )
        return Response(
            content=result.content,
            status_code=result.status_code,
            headers=result.headers,
            media_type=result.media_type,
        )

    return router
