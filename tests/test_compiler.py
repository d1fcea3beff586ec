"""
Controller compiler: stage ordering, configuration faults, registration.
"""

import pytest
from pydantic import BaseModel

from talon.auth.guards import AuthenticatedGuard, AuthorizedGuard
from talon.controller import (
    Controller,
    ControllerCompiler,
    GET, POST,
    PreStagePlacement,
    authenticated,
    authorized,
    controller,
    middleware,
    validate,
)
from talon.controller.engine import RouteHandler
from talon.faults import ConfigurationFault


class ItemParams(BaseModel):
    id: int


class ItemQuery(BaseModel):
    page: int = 1


class CreateItem(BaseModel):
    title: str


class Headersish(BaseModel):
    x_tenant: str


async def pre_late(request, response, next):
    await next()


async def pre_early(request, response, next):
    await next()


async def post_one(request, response, next):
    await next()


async def post_two(request, response, next):
    await next()


class RecordingRouter:
    """Minimal HttpRouter capturing registrations."""

    def __init__(self):
        self.routes = []
        self.global_middlewares = []

    def add_route(self, method, path, middlewares, handler):
        self.routes.append((method, path, middlewares, handler))

    def use(self, middleware):
        self.global_middlewares.append(middleware)


def stage_names(middlewares):
    names = []
    for mw in middlewares:
        if isinstance(mw, AuthenticatedGuard):
            names.append("authenticated")
        elif isinstance(mw, AuthorizedGuard):
            names.append("authorized")
        else:
            names.append(mw.__name__)
    return names


@controller("/full")
class FullController(Controller):

    @POST("/:id")
    @validate(headers=Headersish, body=CreateItem)
    @validate(params=ItemParams, query=ItemQuery)
    @authenticated
    @authorized("items:write")
    @middleware(post_one)
    @middleware(pre_late, pre=True, order=10)
    @middleware(post_two)
    @middleware(pre_early, pre=True, order=1)
    async def update(self, request, response, next):
        return {"ok": True}


# ============================================================================
# Stage ordering
# ============================================================================

class TestStageOrdering:

    def test_full_chain_order(self):
        compiled = ControllerCompiler().compile(FullController())
        route = compiled.routes[0]

        assert stage_names(route.middlewares) == [
            "validate_params",
            "validate_query",
            "validate_body",
            "validate_headers",
            "pre_early",
            "pre_late",
            "authenticated",
            "authorized",
            "post_one",
            "post_two",
        ]
        assert isinstance(route.handler, RouteHandler)
        assert route.chain[-1] is route.handler

    def test_pre_stage_before_validation(self):
        compiler = ControllerCompiler(pre_stage=PreStagePlacement.BEFORE_VALIDATION)
        route = compiler.compile(FullController()).routes[0]
        assert stage_names(route.middlewares)[:3] == ["pre_early", "pre_late", "validate_params"]

    def test_pre_stage_sort_is_stable(self):
        async def first(request, response, next):
            await next()

        async def second(request, response, next):
            await next()

        @controller("/stable")
        class StableCtrl(Controller):
            @GET("/")
            @middleware(first, pre=True, order=3)
            @middleware(second, pre=True, order=3)
            async def index(self, request, response, next):
                pass

        route = ControllerCompiler().compile(StableCtrl()).routes[0]
        assert stage_names(route.middlewares) == ["first", "second"]

    def test_first_spec_for_slot_wins(self):
        class OtherParams(BaseModel):
            slug: str

        @controller("/first-wins")
        class FirstWins(Controller):
            @GET("/:id")
            @validate(params=ItemParams)
            @validate(params=OtherParams)
            async def show(self, request, response, next):
                pass

        route = ControllerCompiler().compile(FirstWins()).routes[0]
        assert len(route.middlewares) == 1
        assert "ItemParams" in route.middlewares[0].__qualname__

    def test_bare_route_has_no_stages(self):
        @controller("/bare")
        class BareCtrl(Controller):
            @GET("/")
            async def index(self, request, response, next):
                pass

        route = ControllerCompiler().compile(BareCtrl()).routes[0]
        assert route.middlewares == []
        assert route.full_path == "/bare/"
        assert route.http_method == "GET"

    def test_to_dict(self):
        route = ControllerCompiler().compile(FullController()).routes[0]
        data = route.to_dict()
        assert data["method"] == "POST"
        assert data["path"] == "/full/:id"
        assert data["route_name"] == "update"
        assert len(data["stages"]) == 10


# ============================================================================
# Configuration faults
# ============================================================================

class TestConfigurationFaults:

    def test_missing_base_path(self):
        class NoPath(Controller):
            @GET("/")
            async def index(self, request, response, next):
                pass

        with pytest.raises(ConfigurationFault) as exc_info:
            ControllerCompiler().compile(NoPath())
        assert exc_info.value.code == "CONTROLLER_PATH_MISSING"

    def test_missing_verb(self):
        @controller("/no-verb")
        class NoVerb(Controller):
            @authorized("a")
            async def index(self, request, response, next):
                pass

        with pytest.raises(ConfigurationFault) as exc_info:
            ControllerCompiler().compile(NoVerb())
        assert exc_info.value.code == "ROUTE_METHOD_MISSING"

    def test_empty_path(self):
        @controller("/empty-path")
        class EmptyPath(Controller):
            @GET("")
            async def index(self, request, response, next):
                pass

        with pytest.raises(ConfigurationFault) as exc_info:
            ControllerCompiler().compile(EmptyPath())
        assert exc_info.value.code == "ROUTE_PATH_MISSING"

    def test_non_callable_handler(self):
        @controller("/not-callable")
        class NotCallable(Controller):
            @GET("/")
            async def index(self, request, response, next):
                pass

        instance = NotCallable()
        instance.index = None

        with pytest.raises(ConfigurationFault) as exc_info:
            ControllerCompiler().compile(instance)
        assert exc_info.value.code == "ROUTE_HANDLER_MISSING"


# ============================================================================
# Registration
# ============================================================================

class TestRegistration:

    def test_register_on_any_router(self):
        compiler = ControllerCompiler()
        compiled = compiler.compile(FullController())
        router = RecordingRouter()
        compiler.register(compiled, router)

        assert len(router.routes) == 1
        method, path, middlewares, handler = router.routes[0]
        assert (method, path) == ("POST", "/full/:id")
        assert len(middlewares) == 10
        assert isinstance(handler, RouteHandler)

    def test_compiled_controllers_tracked(self):
        compiler = ControllerCompiler()
        compiled = compiler.compile(FullController())
        assert compiler.compiled_controllers[FullController] is compiled

    def test_trust_headers_passed_to_guards(self):
        compiler = ControllerCompiler(trust_identity_headers=False)
        route = compiler.compile(FullController()).routes[0]
        guards = [m for m in route.middlewares if isinstance(m, (AuthenticatedGuard, AuthorizedGuard))]
        assert guards and all(g.trust_headers is False for g in guards)


class TestIdempotence:

    def test_two_instances_share_definitions(self):
        compiler = ControllerCompiler()
        first = compiler.compile(FullController())
        second = compiler.compile(FullController())

        assert first.definitions is second.definitions
        assert len(second.definitions.routes) == 1
        assert second.definitions.routes[0].permissions == ["items:write"]
