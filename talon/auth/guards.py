"""
TalonAuth - Guards

Authentication and authorization guards in ``(request, response, next)``
form. The route compiler inserts them for ``@authenticated`` and
``@authorized`` routes; they can also be used as plain middleware.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable, List, TYPE_CHECKING
import logging

from ..faults import ForbiddenFault, UnauthorizedFault
from .core import (
    PERMISSIONS_HEADER,
    header_asserts_authentication,
    identity_from_headers,
    parse_permissions,
    stamp_identity,
)

if TYPE_CHECKING:
    from ..request import Request
    from ..response import Response


logger = logging.getLogger("talon.auth")


class Guard:
    """
    Base guard.

    Subclasses implement ``check``; a passing check continues the chain,
    a failing one raises the guard's fault.
    """

    def check(self, request: "Request") -> None:
        raise NotImplementedError

    async def __call__(self, request: "Request", response: "Response", next: Any) -> None:
        self.check(request)
        await next()


class AuthenticatedGuard(Guard):
    """
    Requires ``request.authenticated``.

    With ``trust_headers`` an asserting ``x-authenticated`` header also
    passes, and the header identity is stamped onto the request first.

    Raises:
        UnauthorizedFault: 401 ``{"message": "Unauthorized"}``
    """

    def __init__(self, trust_headers: bool = True):
        self.trust_headers = trust_headers

    def check(self, request: "Request") -> None:
        if getattr(request, "authenticated", False):
            return
        if self.trust_headers and header_asserts_authentication(request):
            stamp_identity(request, identity_from_headers(request))
            return
        logger.info("Unauthenticated request to %s %s", request.method, request.path)
        raise UnauthorizedFault("Unauthorized")


class AuthorizedGuard(Guard):
    """
    Requires at least one of ``required`` (OR semantics).

    Current permissions are ``request.user.permissions`` (attribute or
    mapping key) plus, with ``trust_headers``, the ``x-user-permissions``
    header. An empty requirement always passes.

    Raises:
        ForbiddenFault: 403 ``{"message": "Forbidden"}``
    """

    def __init__(self, required: Iterable[str], trust_headers: bool = True):
        self.required: List[str] = list(required)
        self.trust_headers = trust_headers

    def current_permissions(self, request: "Request") -> set:
        user = getattr(request, "user", None)
        if isinstance(user, Mapping):
            granted = user.get("permissions")
        else:
            granted = getattr(user, "permissions", None)
        current = set(granted or [])
        if self.trust_headers:
            current.update(parse_permissions(request.headers.get(PERMISSIONS_HEADER)))
        return current

    def check(self, request: "Request") -> None:
        if not self.required:
            return
        current = self.current_permissions(request)
        if any(permission in current for permission in self.required):
            return
        logger.info(
            "Forbidden %s %s: requires any of %s",
            request.method, request.path, self.required,
        )
        raise ForbiddenFault("Forbidden")

    def __repr__(self) -> str:
        return f"AuthorizedGuard({self.required!r})"


authenticated_guard = AuthenticatedGuard()


def authorized_guard(required: Iterable[str], trust_headers: bool = True) -> AuthorizedGuard:
    return AuthorizedGuard(required, trust_headers=trust_headers)
