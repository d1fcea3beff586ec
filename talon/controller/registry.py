"""
Route Registry - single source of truth for declared routes.

Maps a controller class to its ``RouteDefinitions``. Lookups always
resolve instances to their class so every instance of a controller
shares one set of definitions.

Integrates with:
- talon.controller.metadata for storage of per-function declarations
- talon.controller.decorators, which record declarations on functions
- talon.controller.compiler, which reads the finalized definitions
"""

from typing import Any, Dict, List, Optional, Union
import inspect
import logging

from .metadata import (
    CONTROLLER_MODULE,
    CONTROLLER_NAME,
    CONTROLLER_PATH,
    PARAMETER_INDICES,
    ROUTE_OPTIONS,
    MetadataStore,
    ParameterSlot,
    RouteDefinition,
    RouteDefinitions,
    RouteOptions,
    metadata as default_store,
)
from .merge import merge_extra_data, merge_route_options, unify


logger = logging.getLogger("talon.controller.registry")


class RouteRegistry:
    """
    Registry of ``RouteDefinitions`` keyed by class identity.

    Definitions are created lazily and never removed. All mutating
    operations happen at import/bootstrap time; after the application is
    built the registry is only read.
    """

    def __init__(self, store: Optional[MetadataStore] = None):
        self.store = store or default_store
        self._definitions: Dict[type, RouteDefinitions] = {}
        self._collected: set = set()

    @staticmethod
    def _class_of(target: Any) -> type:
        return target if inspect.isclass(target) else type(target)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def get_or_create_definitions(self, target: Any) -> RouteDefinitions:
        cls = self._class_of(target)
        definitions = self._definitions.get(cls)
        if definitions is None:
            definitions = RouteDefinitions()
            self._definitions[cls] = definitions
        return definitions

    def set_base_path(
        self,
        target: Any,
        path: str,
        name: Optional[str] = None,
        module_name: Optional[str] = None,
    ) -> None:
        definitions = self.get_or_create_definitions(target)
        definitions.base_path = path
        if name is not None:
            definitions.name = name
        if module_name is not None:
            definitions.module_name = module_name

    def get_base_path(self, target: Any) -> str:
        return self.get_or_create_definitions(target).base_path

    def get_routes(self, target: Any) -> List[RouteDefinition]:
        return self.get_or_create_definitions(target).routes

    def controllers(self) -> List[type]:
        """Every class that has definitions, in registration order."""
        return list(self._definitions)

    def is_registered(self, target: Any) -> bool:
        return self._class_of(target) in self._definitions

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def get_or_create_route(self, target: Any, method_name: str) -> RouteDefinition:
        definitions = self.get_or_create_definitions(target)
        route = definitions.find(method_name)
        if route is None:
            route = RouteDefinition(method_name=method_name)
            definitions.routes.append(route)
        return route

    def update_route(self, target: Any, method_name: str, update: RouteOptions) -> RouteDefinition:
        """
        Merge a partial declaration into the route for ``method_name``.

        Collections are unioned when the update supplies values; scalars
        are overwritten only when the update supplies them.
        """
        route = self.get_or_create_route(target, method_name)

        if update.validations:
            route.validations = unify([*route.validations, *update.validations])
        if update.permissions:
            route.permissions = unify([*route.permissions, *update.permissions])
        if update.middlewares:
            route.middlewares = unify([*route.middlewares, *update.middlewares])

        if update.method is not None:
            route.method = update.method.upper()
        if update.path is not None:
            route.path = update.path
        if update.name is not None:
            route.name = update.name
        if update.authenticated is not None:
            route.authenticated = update.authenticated
        if update.extra_data is not None:
            route.extra_data = merge_extra_data(route.extra_data, update.extra_data)

        return route

    def set_parameter_index(
        self,
        target: Any,
        method_name: str,
        slot: Union[ParameterSlot, str],
        index: int,
    ) -> None:
        route = self.get_or_create_route(target, method_name)
        route.parameter_indices[ParameterSlot(slot)] = index

    # ------------------------------------------------------------------
    # Collection of decorated methods
    # ------------------------------------------------------------------

    def collect(self, cls: type) -> RouteDefinitions:
        """
        Flush function-level declarations of ``cls`` into the registry.

        Only attributes defined in the class body are visited. Safe to call
        more than once for the same class.
        """
        definitions = self.get_or_create_definitions(cls)
        if cls in self._collected:
            return definitions
        self._collected.add(cls)

        path = self.store.get(cls, CONTROLLER_PATH)
        if path is not None:
            self.set_base_path(
                cls,
                path,
                self.store.get(cls, CONTROLLER_NAME),
                self.store.get(cls, CONTROLLER_MODULE),
            )

        for attr_name, attr in vars(cls).items():
            options, indices = self._declarations_of(attr)
            if options is None and not indices:
                continue
            self.update_route(cls, attr_name, options or RouteOptions())
            for slot, index in indices.items():
                self.set_parameter_index(cls, attr_name, slot, index)
            logger.debug("Collected %s.%s", cls.__name__, attr_name)

        return definitions

    def _declarations_of(self, attr: Any):
        """
        Merged options and parameter indices along a ``__wrapped__`` chain.

        Inner functions are merged first so outer decorators win scalars.
        """
        if isinstance(attr, (staticmethod, classmethod)):
            attr = attr.__func__
        if not inspect.isfunction(attr):
            return None, {}

        chain = []
        seen = set()
        current = attr
        while inspect.isfunction(current) and id(current) not in seen:
            seen.add(id(current))
            chain.append(current)
            current = getattr(current, "__wrapped__", None)

        options: Optional[RouteOptions] = None
        indices: Dict[ParameterSlot, int] = {}
        for func in reversed(chain):
            func_options = self.store.get(func, ROUTE_OPTIONS)
            if func_options is not None:
                options = merge_route_options(options, func_options)
            indices.update(self.store.get(func, PARAMETER_INDICES) or {})
        return options, indices


registry = RouteRegistry()
