"""
auth/tokens.py -- JWT signing/verification for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Two independent signing configurations:
       access tokens (short TTL, stateless -- signature + expiry is the whole
       check) and refresh tokens (long TTL, stateful -- AuthService also
       compares against the hash stored on the account). Separate secrets mean
       an access token can never be replayed at the refresh endpoint.

  Verification returns a typed TokenError (EXPIRED / INVALID_SIGNATURE /
       MALFORMED) so the reason can be logged. Callers must collapse all three
       into one UNAUTHORIZED response -- see core/errors.py.

  Refresh token hashes: HMAC-SHA256(refresh_secret, raw_token). Refresh tokens
       are high-entropy signed strings, so bcrypt's slowness buys nothing here,
       and bcrypt would silently truncate a JWT at 72 bytes (every token for
       the same account shares that prefix). The deterministic HMAC is compared
       with hmac.compare_digest to avoid timing leaks.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import Role, TokenClaims, TokenPair
from core.config import Settings
from core.errors import TokenError
from core.result import Err, Ok, Result

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenConfig:
    """One signing configuration: the HMAC secret and the token lifetime."""

    secret: str
    ttl_seconds: int

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks.
        return f"TokenConfig(secret='***', ttl_seconds={self.ttl_seconds})"


class TokenManager:
    """Signs and verifies the two token classes.

    Usage:
        tokens = TokenManager.from_settings(get_settings())
        pair = tokens.issue_pair(claims)
        result = tokens.verify(pair.refresh_token, tokens.refresh)
    """

    def __init__(self, access: TokenConfig, refresh: TokenConfig) -> None:
        self.access = access
        self.refresh = refresh

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenManager":
        return cls(
            access=TokenConfig(settings.access_token_secret, settings.access_token_expire_seconds),
            refresh=TokenConfig(settings.refresh_token_secret, settings.refresh_token_expire_seconds),
        )

    # ------------------------------------------------------------------
    # Sign / verify
    # ------------------------------------------------------------------

    def sign(self, claims: TokenClaims, config: TokenConfig) -> str:
        """Encode a signed JWT for the given identity.

        Only subject, email and role are taken from claims. Expiry (absolute,
        now + config.ttl_seconds), issued-at and a fresh random jti are set
        here, so callers cannot mint tokens with arbitrary lifetimes.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(claims.subject),
            "email": claims.email,
            "role": claims.role.value,
            "iat": now,
            "exp": now + timedelta(seconds=config.ttl_seconds),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, config.secret, algorithm=_ALGORITHM)

    def verify(self, token: str, config: TokenConfig) -> Result[TokenClaims, TokenError]:
        """Verify signature and expiry, then parse the claims.

        Order matters: the structural check runs first so garbage input is
        reported as MALFORMED rather than as a signature failure. python-jose
        checks the signature before expiry, so an expired token with a bad
        signature is INVALID_SIGNATURE.
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            return Err(TokenError.MALFORMED)

        try:
            payload = jwt.decode(token, config.secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError:
            return Err(TokenError.EXPIRED)
        except JWTClaimsError:
            return Err(TokenError.MALFORMED)
        except JWTError:
            return Err(TokenError.INVALID_SIGNATURE)

        claims = _claims_from_payload(payload)
        if claims is None:
            return Err(TokenError.MALFORMED)
        return Ok(claims)

    def issue_pair(self, claims: TokenClaims) -> TokenPair:
        """Sign one access and one refresh token for the same identity."""
        return TokenPair(
            access_token=self.sign(claims, self.access),
            refresh_token=self.sign(claims, self.refresh),
            expires_in=self.access.ttl_seconds,
        )

    # ------------------------------------------------------------------
    # Refresh token hashing
    # ------------------------------------------------------------------

    def hash_refresh_token(self, raw_token: str) -> str:
        """Return HMAC-SHA256(refresh_secret, raw_token) as a hex string."""
        return hmac.new(
            self.refresh.secret.encode(),
            raw_token.encode(),
            hashlib.sha256,
        ).hexdigest()

    def refresh_hash_matches(self, raw_token: str, stored_hash: str) -> bool:
        return hmac.compare_digest(self.hash_refresh_token(raw_token), stored_hash)


def _claims_from_payload(payload: dict) -> TokenClaims | None:
    """Map a verified JWT payload onto TokenClaims. None if the shape is wrong."""
    try:
        subject = int(payload["sub"])
        email = payload["email"]
        role = Role(payload["role"])
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError, OverflowError, OSError):
        return None
    if not isinstance(email, str):
        return None
    return TokenClaims(
        subject=subject,
        email=email,
        role=role,
        expires_at=expires_at,
        token_id=payload.get("jti"),
    )
