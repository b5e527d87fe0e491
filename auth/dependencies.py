"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and roles.

Identity comes from one place only: the Authorization: Bearer <access token>
header. Access tokens are stateless, so resolving the principal is a pure
signature + expiry check with no store lookup.

try_get_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_roles(...) builds a dependency that first resolves the principal and
then applies auth.guard.authorize() to the role set declared on the route.

Layer rule: auth/dependencies.py may import from fastapi (for Request and
HTTPException) because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.guard import authorize, requirement
from auth.models import Role, TokenClaims
from auth.tokens import TokenManager
from core.result import Err

logger = logging.getLogger("accessdesk.auth")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def try_get_principal(request: Request) -> TokenClaims | None:
    """Verify the bearer access token. Returns claims on success, None on any failure.

    The failure reason (expired / bad signature / malformed) is logged here
    and goes no further.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    tokens: TokenManager = request.app.state.tokens
    result = tokens.verify(token, tokens.access)
    if isinstance(result, Err):
        logger.info("Access token rejected: %s", result.error.value)
        return None
    return result.value


def get_current_principal(request: Request) -> TokenClaims:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: TokenClaims = Depends(get_current_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_roles(*roles: Role) -> Callable[[Request], TokenClaims]:
    """Build a dependency enforcing that the principal holds one of roles.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role does not match.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(principal: TokenClaims = Depends(require_roles(Role.ADMIN))): ...
    """
    required = requirement(*roles)

    def dependency(request: Request) -> TokenClaims:
        principal = get_current_principal(request)
        result = authorize(required, principal)
        if isinstance(result, Err):
            raise HTTPException(
                status_code=403,
                detail={"code": result.error.kind.value, "message": result.error.message},
            )
        return result.value

    return dependency


require_admin = require_roles(Role.ADMIN)
