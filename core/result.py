"""
core/result.py -- Ok/Err result values for operations that can fail expectedly.

Services in auth/ return these instead of raising for the failures a caller
is expected to handle (bad credentials, duplicate email, missing role).
Unexpected failures (database down, programming errors) still raise.

Usage:
    result = service.login(email, password)
    if isinstance(result, Err):
        return error_response(result.error)
    tokens = result.value.tokens

Python 3.10 structural pattern matching works as well:
    match result:
        case Ok(value): ...
        case Err(error): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
