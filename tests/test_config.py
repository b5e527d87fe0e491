"""
tests/test_config.py -- Settings validation for signing secrets and bcrypt cost.

Settings(...) keyword arguments take priority over environment variables, so
these tests are unaffected by the DEBUG=true default set in conftest.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_ACCESS = "a" * 32
_REFRESH = "r" * 32


def test_debug_generates_missing_secrets() -> None:
    settings = Settings(_env_file=None, debug=True, access_token_secret="", refresh_token_secret="")
    assert len(settings.access_token_secret) >= 32
    assert settings.access_token_secret != settings.refresh_token_secret


def test_production_requires_secrets() -> None:
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(_env_file=None, debug=False, access_token_secret="", refresh_token_secret=_REFRESH)


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(_env_file=None, debug=False, access_token_secret="short", refresh_token_secret=_REFRESH)


def test_shared_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="must differ"):
        Settings(_env_file=None, debug=False, access_token_secret=_ACCESS, refresh_token_secret=_ACCESS)


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounds(rounds: int) -> None:
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        Settings(_env_file=None, access_token_secret=_ACCESS, refresh_token_secret=_REFRESH, bcrypt_rounds=rounds)


def test_cache_url_from_host_and_port() -> None:
    settings = Settings(
        _env_file=None,
        access_token_secret=_ACCESS,
        refresh_token_secret=_REFRESH,
        cache_host="cache.internal",
        cache_port=7000,
    )
    assert settings.cache_url == "http://cache.internal:7000/rpc"
