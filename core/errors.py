"""
core/errors.py -- Error taxonomy shared by the service layer and the API layer.

ErrorKind is the externally visible category. The API layer maps each kind to
exactly one HTTP status (see api/errors.py); services never pick status codes.

TokenError is the internal verification reason. It is logged, never returned
to clients: every TokenError surfaces as ErrorKind.UNAUTHORIZED so a caller
cannot probe which check failed.

Cache degradation has no member here on purpose: an unreachable cache is
logged by cache/gateway.py and otherwise invisible.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


class TokenError(str, Enum):
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ServiceError:
    """A handled failure: the kind drives the status code, message is client-safe."""

    kind: ErrorKind
    message: str


# Shared instances for the messages that must stay byte-identical across code
# paths. login() returns BAD_CREDENTIALS for unknown email AND wrong password.
BAD_CREDENTIALS = ServiceError(ErrorKind.UNAUTHORIZED, "Invalid email or password.")
INVALID_REFRESH = ServiceError(ErrorKind.UNAUTHORIZED, "Invalid or expired refresh token.")
UNKNOWN_PRINCIPAL = ServiceError(ErrorKind.UNAUTHORIZED, "Authentication required.")
