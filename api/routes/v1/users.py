"""
api/routes/v1/users.py -- Account administration endpoints.

Routes:
  GET    /api/v1/users       -- paginated, sortable, searchable account list (admin)
  DELETE /api/v1/users/{id}  -- soft-delete an account and end its session (admin)

The listing is the cache-aside read path:

    build_options -> listing_key -> cache.get --hit--> return
                                        |
                                       miss -> AccountStore.list_accounts -> cache.set (best effort)

The cache is advisory. A dead cache service costs one bounded wait per
request and nothing else -- see cache/gateway.py.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.errors import raise_service_error
from api.limiter import limiter
from api.models import AccountPageResponse
from auth.dependencies import require_admin
from auth.models import TokenClaims
from auth.store import SORTABLE_COLUMNS, AccountStore
from cache.gateway import CacheBackend, cache_aside
from cache.keys import listing_key
from core.config import get_settings
from core.errors import ErrorKind, ServiceError
from core.query import build_options

# Auth policy:
# - GET    /api/v1/users:       requires admin (require_admin)
# - DELETE /api/v1/users/{id}:  requires admin (require_admin)
router = APIRouter()

_CACHE_NAMESPACE = "accounts"


def _users_rate_limit() -> str:
    return get_settings().users_rate_limit


@limiter.limit(_users_rate_limit)
@router.get("/users", response_model=AccountPageResponse)
def list_users(
    request: Request,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    search: Optional[str] = None,
    principal: TokenClaims = Depends(require_admin),
) -> dict:
    """List live accounts. Admin only.

    Query parameters are taken as raw strings and normalized, never rejected:
    page/limit fall back to 1/10, order to DESC, sort to created_at when the
    column is not sortable. search matches name or email as a substring.
    """
    settings = get_settings()
    store: AccountStore = request.app.state.account_store
    cache: CacheBackend = request.app.state.cache

    options = build_options(
        page,
        limit,
        sort,
        order,
        search,
        sortable_columns=SORTABLE_COLUMNS,
        max_limit=settings.max_page_size,
    )
    return cache_aside(
        cache,
        listing_key(_CACHE_NAMESPACE, options),
        settings.users_cache_ttl_seconds,
        lambda: store.list_accounts(options).to_dict(),
    )


@router.delete("/users/{account_id}", status_code=204)
def delete_user(
    request: Request,
    account_id: int,
    principal: TokenClaims = Depends(require_admin),
) -> Response:
    """Soft-delete an account. Admin only.

    The row is tombstoned, not removed. Its refresh session is cleared in the
    same statement; any access token it still holds works until expiry but
    profile lookups for it return 401. Admins cannot delete themselves.
    """
    if account_id == principal.subject:
        raise_service_error(ServiceError(ErrorKind.CONFLICT, "You cannot delete your own account."))

    store: AccountStore = request.app.state.account_store
    if not store.soft_delete(account_id):
        raise_service_error(ServiceError(ErrorKind.NOT_FOUND, "Account not found."))
    return Response(status_code=204)
