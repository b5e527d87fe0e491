"""Unit tests for auth/guard.py and the require_roles() dependency.

The dependency tests mount a throwaway FastAPI app with two routes so the
guard is exercised through real dependency injection without the full
AccessDesk middleware stack.
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from auth.dependencies import get_current_principal, require_roles
from auth.guard import authorize, requirement
from auth.models import Role, TokenClaims
from auth.tokens import TokenConfig, TokenManager
from core.errors import ErrorKind
from core.result import Err, Ok

_USER = TokenClaims(subject=1, email="u@example.com", role=Role.USER)
_ADMIN = TokenClaims(subject=2, email="a@example.com", role=Role.ADMIN)


# ---------------------------------------------------------------------------
# requirement() / authorize()
# ---------------------------------------------------------------------------


def test_requirement_from_roles_and_strings() -> None:
    assert requirement(Role.ADMIN) == frozenset({Role.ADMIN})
    assert requirement("admin", "user") == frozenset({Role.ADMIN, Role.USER})
    assert requirement() is None


def test_requirement_rejects_unknown_role() -> None:
    with pytest.raises(ValueError):
        requirement("superuser")


@pytest.mark.parametrize("required", [None, frozenset(), []])
def test_no_requirement_permits_any_principal(required) -> None:
    assert authorize(required, _USER) == Ok(_USER)


def test_matching_role_permits() -> None:
    assert authorize(requirement(Role.ADMIN), _ADMIN) == Ok(_ADMIN)
    assert authorize(requirement(Role.ADMIN, Role.USER), _USER) == Ok(_USER)


def test_missing_role_is_forbidden() -> None:
    result = authorize(requirement(Role.ADMIN), _USER)
    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.FORBIDDEN


# ---------------------------------------------------------------------------
# require_roles() through FastAPI
# ---------------------------------------------------------------------------


@pytest.fixture
def guarded() -> tuple[TestClient, TokenManager]:
    tokens = TokenManager(
        access=TokenConfig(secret="g" * 40, ttl_seconds=900),
        refresh=TokenConfig(secret="h" * 40, ttl_seconds=3600),
    )
    app = FastAPI()
    app.state.tokens = tokens

    @app.get("/me")
    def me(principal: TokenClaims = Depends(get_current_principal)):
        return {"id": principal.subject}

    @app.get("/admin")
    def admin_only(principal: TokenClaims = Depends(require_roles(Role.ADMIN))):
        return {"id": principal.subject}

    return TestClient(app), tokens


def _auth(tokens: TokenManager, claims: TokenClaims) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens.sign(claims, tokens.access)}"}


def test_admin_passes_admin_guard(guarded) -> None:
    client, tokens = guarded
    resp = client.get("/admin", headers=_auth(tokens, _ADMIN))
    assert resp.status_code == 200
    assert resp.json() == {"id": 2}


def test_user_is_forbidden_by_admin_guard(guarded) -> None:
    client, tokens = guarded
    resp = client.get("/admin", headers=_auth(tokens, _USER))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "forbidden"


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer"},
        {"Authorization": "Bearer not-a-jwt"},
        {"Authorization": "Basic dXNlcjpwYXNz"},
    ],
)
def test_unauthenticated_is_401_before_role_check(guarded, headers) -> None:
    client, _ = guarded
    for path in ("/me", "/admin"):
        resp = client.get(path, headers=headers)
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_refresh_token_is_not_an_access_token(guarded) -> None:
    client, tokens = guarded
    refresh = tokens.sign(_ADMIN, tokens.refresh)
    assert client.get("/me", headers={"Authorization": f"Bearer {refresh}"}).status_code == 401


def test_expired_access_token_is_401(guarded) -> None:
    client, tokens = guarded
    stale = tokens.sign(_ADMIN, TokenConfig(secret=tokens.access.secret, ttl_seconds=-30))
    assert client.get("/admin", headers={"Authorization": f"Bearer {stale}"}).status_code == 401
