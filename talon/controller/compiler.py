"""
Controller Compiler - turns route definitions into middleware chains.

Runs once at startup. For every route of a controller instance it emits:

1. validation stage: one step per slot, in order params, query, body,
   headers; the first spec declaring a slot wins
2. pre-stage: ``pre`` middleware, stable-sorted by ``order``
3. authentication guard, when ``authenticated``
4. authorization guard, when permissions are declared
5. post-stage: remaining middleware in the order written
6. the ``RouteHandler`` terminal stage

The pre-stage can be moved in front of the validation stage with
``PreStagePlacement.BEFORE_VALIDATION``.

Integrates with:
- talon.controller.registry for the finalized definitions
- talon.validation and talon.auth for the stock stages
- talon.asgi.HttpRouter for registration
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging

from ..auth.guards import AuthenticatedGuard, AuthorizedGuard
from ..faults import ConfigurationFault
from ..validation import validation_middleware
from .engine import RouteHandler
from .metadata import VALIDATION_SLOTS, RouteDefinition, RouteDefinitions
from .registry import RouteRegistry, registry as default_registry


logger = logging.getLogger("talon.controller.compiler")


class PreStagePlacement(str, Enum):
    """Where ``pre`` middleware runs relative to validation."""

    AFTER_VALIDATION = "after_validation"
    BEFORE_VALIDATION = "before_validation"


@dataclass
class CompiledRoute:
    """A route ready for registration on an ``HttpRouter``."""

    controller_class: type
    definition: RouteDefinition
    http_method: str
    full_path: str
    middlewares: List[Any]
    handler: RouteHandler

    @property
    def chain(self) -> List[Any]:
        return [*self.middlewares, self.handler]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "controller": f"{self.controller_class.__module__}:{self.controller_class.__name__}",
            "route_name": self.definition.method_name,
            "method": self.http_method,
            "path": self.full_path,
            "stages": [getattr(mw, "__qualname__", repr(mw)) for mw in self.middlewares],
        }


@dataclass
class CompiledController:
    """All compiled routes of one controller instance."""

    controller_class: type
    instance: Any
    definitions: RouteDefinitions
    routes: List[CompiledRoute] = field(default_factory=list)


class ControllerCompiler:
    """
    Compiles controller instances into registrable routes.

    Configuration errors raise ``ConfigurationFault`` and are meant to
    abort application startup.
    """

    def __init__(
        self,
        registry: Optional[RouteRegistry] = None,
        pre_stage: PreStagePlacement = PreStagePlacement.AFTER_VALIDATION,
        trust_identity_headers: bool = True,
    ):
        self.registry = registry or default_registry
        self.pre_stage = PreStagePlacement(pre_stage)
        self.trust_identity_headers = trust_identity_headers
        self.compiled_controllers: Dict[type, CompiledController] = {}

    def compile(self, controller: Any) -> CompiledController:
        """
        Compile every route of ``controller`` (an instance).

        Raises:
            ConfigurationFault: Missing base path, verb, path or handler
        """
        cls = type(controller)
        definitions = self.registry.collect(cls)

        if not definitions.base_path:
            raise ConfigurationFault(
                "CONTROLLER_PATH_MISSING",
                f"Controller {cls.__name__} has no base path; decorate it with @controller(path)",
                controller=cls.__name__,
            )

        compiled = CompiledController(controller_class=cls, instance=controller, definitions=definitions)
        for route in definitions.routes:
            compiled.routes.append(self.compile_route(controller, definitions, route))

        self.compiled_controllers[cls] = compiled
        logger.info(
            "Compiled %s at %s (%d routes)", cls.__name__, definitions.base_path, len(compiled.routes),
        )
        return compiled

    def compile_route(self, controller: Any, definitions: RouteDefinitions, route: RouteDefinition) -> CompiledRoute:
        cls = type(controller)
        if not route.method:
            raise ConfigurationFault(
                "ROUTE_METHOD_MISSING",
                f"{cls.__name__}.{route.method_name} has no HTTP method",
                controller=cls.__name__,
                method_name=route.method_name,
            )
        if not route.path:
            raise ConfigurationFault(
                "ROUTE_PATH_MISSING",
                f"{cls.__name__}.{route.method_name} has no path",
                controller=cls.__name__,
                method_name=route.method_name,
            )

        bound = getattr(controller, route.method_name, None)
        if not callable(bound):
            raise ConfigurationFault(
                "ROUTE_HANDLER_MISSING",
                f"{cls.__name__}.{route.method_name} is not callable",
                controller=cls.__name__,
                method_name=route.method_name,
            )

        full_path = definitions.base_path + route.path
        middlewares = self.build_middlewares(route)
        handler = RouteHandler(bound, route, owner=cls.__name__)

        logger.debug(
            "%s %s -> %s.%s (%d stages)",
            route.method, full_path, cls.__name__, route.method_name, len(middlewares),
        )
        return CompiledRoute(
            controller_class=cls,
            definition=route,
            http_method=route.method,
            full_path=full_path,
            middlewares=middlewares,
            handler=handler,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def validation_stage(self, route: RouteDefinition) -> List[Any]:
        stages = []
        for slot in VALIDATION_SLOTS:
            declared = route.validation_for(slot)
            if declared is None:
                continue
            schema, spec = declared
            stages.append(validation_middleware(schema, slot, log_values=spec.logging, strict=spec.strict))
        return stages

    def pre_stage_middlewares(self, route: RouteDefinition) -> List[Any]:
        entries = sorted((m for m in route.middlewares if m.pre), key=lambda m: m.order)
        return [entry.handler for entry in entries]

    def post_stage_middlewares(self, route: RouteDefinition) -> List[Any]:
        return [entry.handler for entry in route.middlewares if not entry.pre]

    def auth_stage(self, route: RouteDefinition) -> List[Any]:
        stages: List[Any] = []
        if route.authenticated:
            stages.append(AuthenticatedGuard(trust_headers=self.trust_identity_headers))
        if route.permissions:
            stages.append(AuthorizedGuard(route.permissions, trust_headers=self.trust_identity_headers))
        return stages

    def build_middlewares(self, route: RouteDefinition) -> List[Any]:
        validation = self.validation_stage(route)
        pre = self.pre_stage_middlewares(route)
        if self.pre_stage is PreStagePlacement.BEFORE_VALIDATION:
            head = [*pre, *validation]
        else:
            head = [*validation, *pre]
        return [*head, *self.auth_stage(route), *self.post_stage_middlewares(route)]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, compiled: CompiledController, router: Any) -> None:
        for route in compiled.routes:
            router.add_route(route.http_method, route.full_path, route.middlewares, route.handler)
