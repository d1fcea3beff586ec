"""
TalonAuth - identity markers and header-based identity resolution.

The guards only read ``request.authenticated`` and
``request.user.permissions``. How those get stamped is up to an upstream
mechanism; ``HeaderIdentityMiddleware`` is the stock one, trusting
identity headers set by a gateway in front of the service:

- ``x-authenticated``: ``true`` / ``1`` / ``yes`` / ``y`` (case-insensitive)
- ``x-user-id``: optional user id
- ``x-user-permissions``: optional comma-separated permission list
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..request import Request
    from ..response import Response


logger = logging.getLogger("talon.auth")

AUTHENTICATED_HEADER = "x-authenticated"
USER_ID_HEADER = "x-user-id"
PERMISSIONS_HEADER = "x-user-permissions"

_TRUTHY = frozenset({"true", "1", "yes", "y"})


@dataclass(frozen=True)
class Identity:
    """Authenticated principal as seen by the guards."""
    id: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def has_any(self, permissions: Iterable[str]) -> bool:
        current = set(self.permissions)
        return any(p in current for p in permissions)


def parse_permissions(value: Optional[str]) -> List[str]:
    """Split a comma-separated permission header, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def header_asserts_authentication(request: "Request") -> bool:
    value = (request.headers.get(AUTHENTICATED_HEADER) or "").strip().lower()
    return value in _TRUTHY


def identity_from_headers(request: "Request") -> Identity:
    return Identity(
        id=request.headers.get(USER_ID_HEADER) or None,
        permissions=parse_permissions(request.headers.get(PERMISSIONS_HEADER)),
    )


def stamp_identity(request: "Request", identity: Identity) -> None:
    request.authenticated = True
    request.user = identity


class HeaderIdentityMiddleware:
    """
    Global middleware stamping identity markers from gateway headers.

    Requests without an asserting ``x-authenticated`` header pass through
    untouched.
    """

    async def __call__(self, request: "Request", response: "Response", next: Any) -> None:
        if header_asserts_authentication(request):
            identity = identity_from_headers(request)
            stamp_identity(request, identity)
            logger.debug("Identity %s resolved from headers", identity.id)
        await next()
