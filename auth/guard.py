"""
auth/guard.py -- Role-based authorization for already-authenticated principals.

A route declares its requirement statically, next to the route definition:

    @router.get("/users", dependencies=[Depends(require_roles(Role.ADMIN))])

require_roles() (auth/dependencies.py) resolves the principal from the bearer
token first and then calls authorize() below. authorize() never looks at a
token itself; it only compares the verified role claim against the set.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import Role, TokenClaims
from core.errors import ErrorKind, ServiceError
from core.result import Err, Ok, Result

# None means "any authenticated principal".
RoleRequirement = frozenset[Role] | None

_FORBIDDEN = ServiceError(ErrorKind.FORBIDDEN, "You do not have permission to access this resource.")


def requirement(*roles: Role | str) -> RoleRequirement:
    """Build a requirement from role values. No roles means no requirement."""
    if not roles:
        return None
    return frozenset(Role(r) for r in roles)


def authorize(required: RoleRequirement | Iterable[Role], principal: TokenClaims) -> Result[TokenClaims, ServiceError]:
    """Permit when nothing is required or the principal's role is in the set."""
    if required is None:
        return Ok(principal)
    allowed = frozenset(required)
    if not allowed:
        # An empty set is treated as "no requirement declared", matching requirement().
        return Ok(principal)
    if principal.role in allowed:
        return Ok(principal)
    return Err(_FORBIDDEN)
