"""
Identity markers, header identity resolution and route guards.
"""

import pytest

from talon.auth import (
    AuthenticatedGuard,
    AuthorizedGuard,
    HeaderIdentityMiddleware,
    Identity,
    authorized_guard,
    identity_from_headers,
    parse_permissions,
)
from talon.auth.core import header_asserts_authentication
from talon.faults import ForbiddenFault, UnauthorizedFault

from tests.conftest import make_request, run_stage


# ============================================================================
# Identity helpers
# ============================================================================

class TestIdentity:

    def test_parse_permissions(self):
        assert parse_permissions("a, b,,c ") == ["a", "b", "c"]
        assert parse_permissions("") == []
        assert parse_permissions(None) == []

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("TRUE", True), ("1", True), ("yes", True), ("Y", True),
        ("false", False), ("0", False), ("", False), ("maybe", False),
    ])
    def test_header_asserts_authentication(self, value, expected):
        request = make_request(headers=[("x-authenticated", value)])
        assert header_asserts_authentication(request) is expected

    def test_identity_from_headers(self):
        request = make_request(headers=[("x-user-id", "u1"), ("x-user-permissions", "admin,read")])
        identity = identity_from_headers(request)
        assert identity.id == "u1"
        assert identity.has_permission("admin")
        assert identity.has_any(["write", "read"])
        assert not identity.has_any(["write"])

    @pytest.mark.asyncio
    async def test_header_identity_middleware(self):
        request = make_request(headers=[("x-authenticated", "true"), ("x-user-id", "u1")])
        _, called = await run_stage(HeaderIdentityMiddleware(), request)
        assert called
        assert request.authenticated is True
        assert request.user.id == "u1"

    @pytest.mark.asyncio
    async def test_header_identity_middleware_passthrough(self):
        request = make_request()
        _, called = await run_stage(HeaderIdentityMiddleware(), request)
        assert called
        assert request.authenticated is False
        assert request.user is None


# ============================================================================
# Authentication guard
# ============================================================================

class TestAuthenticatedGuard:

    @pytest.mark.asyncio
    async def test_rejects_anonymous(self):
        with pytest.raises(UnauthorizedFault) as exc_info:
            await run_stage(AuthenticatedGuard(), make_request())
        assert exc_info.value.body() == {"message": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_accepts_marker(self):
        request = make_request()
        request.authenticated = True
        _, called = await run_stage(AuthenticatedGuard(), request)
        assert called

    @pytest.mark.asyncio
    async def test_accepts_header(self):
        request = make_request(headers=[("x-authenticated", "yes")])
        _, called = await run_stage(AuthenticatedGuard(), request)
        assert called
        assert request.authenticated is True

    @pytest.mark.asyncio
    async def test_header_ignored_when_untrusted(self):
        request = make_request(headers=[("x-authenticated", "yes")])
        with pytest.raises(UnauthorizedFault):
            await run_stage(AuthenticatedGuard(trust_headers=False), request)


# ============================================================================
# Authorization guard
# ============================================================================

class TestAuthorizedGuard:

    @pytest.mark.asyncio
    async def test_any_permission_suffices(self):
        request = make_request(headers=[("x-user-permissions", "read,owner")])
        _, called = await run_stage(AuthorizedGuard(["admin", "owner"]), request)
        assert called

    @pytest.mark.asyncio
    async def test_missing_permission(self):
        request = make_request(headers=[("x-user-permissions", "read")])
        with pytest.raises(ForbiddenFault) as exc_info:
            await run_stage(AuthorizedGuard(["admin"]), request)
        assert exc_info.value.status == 403
        assert exc_info.value.body() == {"message": "Forbidden"}

    @pytest.mark.asyncio
    async def test_user_permissions(self):
        request = make_request()
        request.user = Identity(id="u1", permissions=["admin"])
        _, called = await run_stage(AuthorizedGuard(["admin"], trust_headers=False), request)
        assert called

    @pytest.mark.asyncio
    async def test_user_permissions_from_mapping(self):
        request = make_request()
        request.user = {"id": "u1", "permissions": ["admin"]}
        _, called = await run_stage(AuthorizedGuard(["admin"], trust_headers=False), request)
        assert called

        request.user = {"id": "u2", "permissions": ["read"]}
        with pytest.raises(ForbiddenFault):
            await run_stage(AuthorizedGuard(["admin"], trust_headers=False), request)

    @pytest.mark.asyncio
    async def test_empty_requirement_passes(self):
        _, called = await run_stage(AuthorizedGuard([]), make_request())
        assert called

    @pytest.mark.asyncio
    async def test_header_ignored_when_untrusted(self):
        request = make_request(headers=[("x-user-permissions", "admin")])
        with pytest.raises(ForbiddenFault):
            await run_stage(authorized_guard(["admin"], trust_headers=False), request)
