"""Security sample routes: HTTP Basic home page and JWT login."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from ...logging_config import get_logger
from ...models import UserDetails
from ...security import (
    AuthenticationError,
    IUserService,
    JwtUtil,
    PasswordEncoder,
    authenticate,
    basic_authentication,
    bearer_authentication,
    require_role,
)

logger = get_logger(__name__)

GREETING = "<h1>你好，Spring Security！</h1>"


class LoginRequest(BaseModel):
    """Request model for JWT login."""

    username: str
    password: str


class LoginResponse(BaseModel):
    """Response model carrying the issued token."""

    status: int
    msg: str
    jwt: str


class UserInfoResponse(BaseModel):
    """Response model for the authenticated user."""

    username: str
    authorities: list[str]


def create_security_router(user_service: IUserService, encoder: PasswordEncoder) -> APIRouter:
    """Create router with the Basic-protected home page."""
    router = APIRouter(tags=["security"])
    current_user = basic_authentication(user_service, encoder)

    @router.get("/", response_class=HTMLResponse)
    async def index(user: UserDetails = Depends(current_user)) -> str:
        """Default home page."""
        return GREETING

    return router


def create_jwt_router(
    user_service: IUserService, encoder: PasswordEncoder, jwt_util: JwtUtil
) -> APIRouter:
    """Create router issuing and checking JWTs. The home page stays public."""
    router = APIRouter(tags=["security"])
    current_user = bearer_authentication(jwt_util)
    any_user = require_role(current_user, "USER", "ADMIN")
    admin = require_role(current_user, "ADMIN")

    @router.get("/", response_class=HTMLResponse)
    async def index() -> str:
        """Default home page."""
        return GREETING

    @router.post("/login", response_model=LoginResponse)
    async def login(request: LoginRequest) -> dict:
        """Check credentials and issue a token."""
        try:
            user = await authenticate(user_service, encoder, request.username, request.password)
        except AuthenticationError as e:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

        token = jwt_util.create_token(user.username, user.roles)
        logger.info(
            "User %s authenticated, issued a JWT valid for %d minutes",
            user.username,
            jwt_util.valid_minutes,
        )
        return {
            "status": 200,
            "msg": "Send this token in the Authorization header of every request: [Bearer jwt]",
            "jwt": token,
        }

    @router.get("/user/info", response_model=UserInfoResponse)
    async def user_info(user: UserDetails = Depends(any_user)) -> dict:
        """Return the user the bearer token belongs to."""
        return {"username": user.username, "authorities": user.authorities}

    @router.get("/admin/info", response_model=UserInfoResponse)
    async def admin_info(user: UserDetails = Depends(admin)) -> dict:
        """Same as /user/info, for administrators only."""
        return {"username": user.username, "authorities": user.authorities}

    return router
