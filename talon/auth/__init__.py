"""
TalonAuth - identity markers and route guards.
"""

from .core import (
    Identity,
    HeaderIdentityMiddleware,
    identity_from_headers,
    parse_permissions,
    stamp_identity,
)
from .guards import (
    Guard,
    AuthenticatedGuard,
    AuthorizedGuard,
    authenticated_guard,
    authorized_guard,
)

__all__ = [
    "Identity",
    "HeaderIdentityMiddleware",
    "identity_from_headers",
    "parse_permissions",
    "stamp_identity",
    "Guard",
    "AuthenticatedGuard",
    "AuthorizedGuard",
    "authenticated_guard",
    "authorized_guard",
]
