"""Unit tests for auth/tokens.py -- TokenManager signing, verification, refresh hashing.

Covers:
- sign/verify round trip yields typed claims (subject back as int, role as Role)
- every token carries a unique jti, so same-second tokens differ
- EXPIRED, INVALID_SIGNATURE and MALFORMED are reported distinctly
- access and refresh configs are not interchangeable
- refresh hashes are deterministic HMACs that never contain the raw token
"""

from __future__ import annotations

from datetime import datetime, timezone

from jose import jwt

from auth.models import Role, TokenClaims
from auth.tokens import TokenConfig, TokenManager
from core.errors import TokenError
from core.result import Err, Ok

_CLAIMS = TokenClaims(subject=42, email="ada@example.com", role=Role.ADMIN)


def test_sign_verify_round_trip(token_manager: TokenManager) -> None:
    token = token_manager.sign(_CLAIMS, token_manager.access)
    result = token_manager.verify(token, token_manager.access)
    assert isinstance(result, Ok)
    claims = result.value
    assert claims.subject == 42
    assert claims.email == "ada@example.com"
    assert claims.role is Role.ADMIN
    assert claims.expires_at is not None and claims.expires_at > datetime.now(timezone.utc)
    assert claims.token_id


def test_subject_travels_as_string_claim(token_manager: TokenManager) -> None:
    """RFC 7519 "sub" must be a string; python-jose rejects anything else on decode."""
    token = token_manager.sign(_CLAIMS, token_manager.access)
    assert jwt.get_unverified_claims(token)["sub"] == "42"


def test_expiry_is_absolute_and_uses_config_ttl(token_manager: TokenManager) -> None:
    before = int(datetime.now(timezone.utc).timestamp())
    token = token_manager.sign(_CLAIMS, token_manager.refresh)
    payload = jwt.get_unverified_claims(token)
    assert before + 3600 <= payload["exp"] <= before + 3600 + 5


def test_tokens_issued_back_to_back_differ(token_manager: TokenManager) -> None:
    first = token_manager.sign(_CLAIMS, token_manager.refresh)
    second = token_manager.sign(_CLAIMS, token_manager.refresh)
    assert first != second


def test_expired_token_reports_expired(token_manager: TokenManager) -> None:
    stale = TokenConfig(secret=token_manager.access.secret, ttl_seconds=-60)
    token = token_manager.sign(_CLAIMS, stale)
    assert token_manager.verify(token, token_manager.access) == Err(TokenError.EXPIRED)


def test_wrong_secret_reports_invalid_signature(token_manager: TokenManager) -> None:
    forged = jwt.encode(
        {"sub": "42", "email": "ada@example.com", "role": "admin", "exp": 4102444800},
        "x" * 40,
        algorithm="HS256",
    )
    assert token_manager.verify(forged, token_manager.access) == Err(TokenError.INVALID_SIGNATURE)


def test_access_token_rejected_as_refresh_token(token_manager: TokenManager) -> None:
    access = token_manager.sign(_CLAIMS, token_manager.access)
    assert token_manager.verify(access, token_manager.refresh) == Err(TokenError.INVALID_SIGNATURE)


def test_unsigned_alg_none_token_rejected(token_manager: TokenManager) -> None:
    header = "eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0"  # {"alg":"none","typ":"JWT"}
    payload = "eyJzdWIiOiI0MiIsImVtYWlsIjoiYUBiLmMiLCJyb2xlIjoiYWRtaW4ifQ"
    result = token_manager.verify(f"{header}.{payload}.", token_manager.access)
    assert isinstance(result, Err)
    assert result.error is not TokenError.EXPIRED


def test_garbage_reports_malformed(token_manager: TokenManager) -> None:
    for garbage in ("", "not-a-jwt", "a.b.c", "Bearer xyz"):
        assert token_manager.verify(garbage, token_manager.access) == Err(TokenError.MALFORMED), garbage


def test_validly_signed_token_missing_claims_is_malformed(token_manager: TokenManager) -> None:
    token = jwt.encode({"sub": "42", "exp": 4102444800}, token_manager.access.secret, algorithm="HS256")
    assert token_manager.verify(token, token_manager.access) == Err(TokenError.MALFORMED)


def test_unknown_role_is_malformed(token_manager: TokenManager) -> None:
    token = jwt.encode(
        {"sub": "42", "email": "a@b.c", "role": "superuser", "exp": 4102444800},
        token_manager.access.secret,
        algorithm="HS256",
    )
    assert token_manager.verify(token, token_manager.access) == Err(TokenError.MALFORMED)


def test_issue_pair_uses_both_configs(token_manager: TokenManager) -> None:
    pair = token_manager.issue_pair(_CLAIMS)
    assert isinstance(token_manager.verify(pair.access_token, token_manager.access), Ok)
    assert isinstance(token_manager.verify(pair.refresh_token, token_manager.refresh), Ok)
    assert pair.expires_in == 900
    assert pair.token_type == "bearer"


def test_refresh_hash_is_deterministic_and_opaque(token_manager: TokenManager) -> None:
    token = token_manager.sign(_CLAIMS, token_manager.refresh)
    digest = token_manager.hash_refresh_token(token)
    assert digest == token_manager.hash_refresh_token(token)
    assert len(digest) == 64
    assert token not in digest
    assert token_manager.refresh_hash_matches(token, digest)
    other = token_manager.sign(_CLAIMS, token_manager.refresh)
    assert not token_manager.refresh_hash_matches(other, digest)


def test_config_repr_hides_secret(token_manager: TokenManager) -> None:
    assert token_manager.access.secret not in repr(token_manager.access)
