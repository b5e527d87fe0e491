"""
api/errors.py -- Translate service-layer errors into HTTP errors.

Services return Err(ServiceError); routes call raise_service_error() and the
exception handlers in api/main.py render the standard error envelope. This
table is the only place an ErrorKind becomes a status code.
"""

from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import HTTPException

from core.errors import ErrorKind, ServiceError

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
}


def raise_service_error(error: ServiceError, headers: Optional[dict[str, str]] = None) -> NoReturn:
    status_code = _STATUS_BY_KIND[error.kind]
    if status_code == 401:
        headers = {"WWW-Authenticate": "Bearer", **(headers or {})}
    raise HTTPException(
        status_code=status_code,
        detail={"code": error.kind.value, "message": error.message},
        headers=headers,
    )
