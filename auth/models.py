"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these classes only own the shape.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass
class Account:
    """An identity record as persisted by the credential store.

    password_hash and refresh_token_hash never leave the service layer --
    use AccountProfile.from_account() for anything that is serialized outward.

    refresh_token_hash is None when the account has no active session (never
    logged in, or logged out). Only one refresh token is valid at a time:
    login and refresh overwrite this column.

    deleted_at is a soft-delete tombstone. Stores exclude tombstoned rows from
    every lookup, so a deleted account behaves like an unknown one.
    """

    name: str
    email: str
    password_hash: str
    role: Role = Role.USER
    id: int | None = None
    refresh_token_hash: str | None = None
    created_at: str | None = None  # ISO 8601, set by store on insert
    updated_at: str | None = None  # ISO 8601, refreshed by store on every update
    deleted_at: str | None = None


@dataclass(frozen=True)
class AccountProfile:
    """Non-sensitive projection of an Account. Safe to serialize."""

    id: int
    name: str
    email: str
    role: Role
    created_at: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountProfile":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            created_at=account.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible dict. Role is emitted as its string value."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by a bearer token.

    subject is the account id. On the wire it travels as the JWT "sub" claim
    in string form (RFC 7519 requires a string); TokenManager converts.
    token_id (the "jti" claim) is random per token so two tokens issued in the
    same second for the same account never compare equal.
    """

    subject: int
    email: str
    role: Role
    expires_at: datetime | None = None
    token_id: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    profile: AccountProfile
