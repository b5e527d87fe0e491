"""
api/routes/v1/auth.py -- Registration, login, token refresh, logout, profile.

Routes:
  POST /api/v1/auth/register  -- create a role=user account; 201 with profile
  POST /api/v1/auth/login     -- password login; returns access + refresh pair
  POST /api/v1/auth/refresh   -- rotate a refresh token into a new pair
  POST /api/v1/auth/logout    -- revoke the caller's refresh session (requires auth)
  GET  /api/v1/auth/profile   -- current account profile (requires auth)

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] AuthService.login() equalizes timing and returns one error for unknown
       email and wrong password. Do NOT add an early "email not found" branch.
  [M5] Cache-Control: no-store on every response that carries tokens,
       including the failures.

Handlers are plain `def`: FastAPI runs them in its thread pool, so bcrypt and
store I/O never block the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.errors import raise_service_error
from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from auth.dependencies import get_current_principal
from auth.models import AccountProfile, TokenClaims
from auth.service import AuthService
from core.config import get_settings
from core.result import Err

# Auth policy:
# - POST /api/v1/auth/register:  public -- self-registration always creates role=user
# - POST /api/v1/auth/login:     public -- rate-limited
# - POST /api/v1/auth/refresh:   public -- the refresh token in the body is the credential
# - POST /api/v1/auth/logout:    requires auth (get_current_principal)
# - GET  /api/v1/auth/profile:   requires auth (get_current_principal)
router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=ProfileResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> ProfileResponse:
    """Create an account. 409 if a live account already uses the email."""
    service: AuthService = request.app.state.auth_service
    result = service.register(body.name, body.email, body.password)
    if isinstance(result, Err):
        raise_service_error(result.error)
    return ProfileResponse.from_profile(AccountProfile.from_account(result.value))


@limiter.limit(_login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password; open a new session.

    Any previous session for the account ends here: its refresh token stops
    working because the stored hash is overwritten.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    if isinstance(result, Err):
        raise_service_error(result.error, headers=_NO_STORE)

    response.headers.update(_NO_STORE)  # [M5]
    tokens = TokenResponse.from_pair(result.value.tokens)
    return LoginResponse(**tokens.model_dump(), user=ProfileResponse.from_profile(result.value.profile))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response, body: RefreshRequest) -> TokenResponse:
    """Exchange a refresh token for a new pair. The presented token is consumed.

    Expired, forged, malformed, superseded and revoked tokens all get the
    same 401 -- the log records which check failed.
    """
    service: AuthService = request.app.state.auth_service
    result = service.refresh(body.refresh_token)
    if isinstance(result, Err):
        raise_service_error(result.error, headers=_NO_STORE)

    response.headers.update(_NO_STORE)  # [M5]
    return TokenResponse.from_pair(result.value)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, principal: TokenClaims = Depends(get_current_principal)) -> MessageResponse:
    """Revoke the caller's refresh token.

    The access token used for this call keeps working until it expires;
    clients should discard it.
    """
    service: AuthService = request.app.state.auth_service
    result = service.logout(principal.subject)
    if isinstance(result, Err):
        raise_service_error(result.error)
    return MessageResponse(message="Logged out.")


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(request: Request, principal: TokenClaims = Depends(get_current_principal)) -> ProfileResponse:
    """Return the caller's account. 401 if the account has since been deleted."""
    service: AuthService = request.app.state.auth_service
    result = service.get_profile(principal)
    if isinstance(result, Err):
        raise_service_error(result.error)
    return ProfileResponse.from_profile(result.value)
