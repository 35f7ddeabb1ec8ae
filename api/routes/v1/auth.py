"""
api/routes/v1/auth.py -- Registration and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; body + refresh cookie
  POST /api/v1/auth/login      -- password login; body + refresh cookie
  POST /api/v1/auth/refresh    -- new access token from the refresh cookie
  POST /api/v1/auth/logout     -- revoke the refresh cookie's session; always 200

Security:
  The refresh token travels in an httpOnly cookie (never readable by script).
  Login also returns it in the body for non-browser clients.
  Cache-Control: no-store on every response that carries a token.
  Login failures use one error code for unknown email and wrong password.

Handlers are plain `def`: bcrypt and the SQLAlchemy store are blocking, so
FastAPI runs them in its thread pool. Errors are raised as auth.errors types
and rendered by the handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/refresh:  refresh cookie only (no bearer token)
# - POST /api/v1/auth/logout:   refresh cookie only; idempotent
router = APIRouter()

REFRESH_COOKIE = "refreshToken"


@router.post("/auth/register", response_model=RegisterResponse)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a USER account and open its first session."""
    service: AuthService = request.app.state.auth_service
    result = service.register(body.full_name, body.birth_date, body.email, body.password)
    resp = JSONResponse(
        content=RegisterResponse(
            user=UserResponse.from_profile(result.user),
            access_token=result.tokens.access_token,
        ).model_dump(mode="json", by_alias=True),
    )
    _set_refresh_cookie(resp, result.tokens.refresh_token)
    return resp


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the refresh cookie.

    400 bad_credentials for unknown email or wrong password, 403 if blocked.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    resp = JSONResponse(
        content=LoginResponse(
            user=UserResponse.from_profile(result.user),
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            expires_in=int(service.issuer.access_ttl.total_seconds()),
        ).model_dump(mode="json", by_alias=True),
    )
    _set_refresh_cookie(resp, result.tokens.refresh_token)
    return resp


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(request: Request) -> JSONResponse:
    """Issue a new access token for the session named by the refresh cookie."""
    service: AuthService = request.app.state.auth_service
    access_token = service.refresh(request.cookies.get(REFRESH_COOKIE))
    resp = JSONResponse(
        content=RefreshResponse(
            access_token=access_token,
            expires_in=int(service.issuer.access_ttl.total_seconds()),
        ).model_dump(mode="json", by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """End the session and clear the cookie. Succeeds even with no session."""
    service: AuthService = request.app.state.auth_service
    service.logout(request.cookies.get(REFRESH_COOKIE))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie(REFRESH_COOKIE)
    return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_refresh_cookie(response: JSONResponse, token: str) -> None:
    """Write the refresh token as an httpOnly cookie and mark the response uncacheable.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POSTs (CSRF mitigation for /refresh).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    """
    settings = get_settings()
    response.set_cookie(
        REFRESH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.refresh_cookie_max_age,
    )
    response.headers["Cache-Control"] = "no-store"
