"""
Controller Base Class

Subclassing ``Controller`` flushes the route declarations of the class
body into the route registry as soon as the class is created. Route
metadata belongs to the class: every instance sees the same definitions.
"""

from typing import Any, List, Optional

from ..faults import Fault, FaultDomain
from .metadata import RouteDefinition, RouteDefinitions
from .registry import registry


class Controller:
    """
    Base Controller class.

    Example:
        @controller("/items")
        class ItemsController(Controller):
            def __init__(self, repo: ItemRepo):
                self.repo = repo

            @GET("/:id")
            @validate(params=ItemParams)
            @params(0)
            async def show(self, params):
                return self.repo.get(params.id)
    """

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        registry.collect(cls)

    @property
    def route_definitions(self) -> RouteDefinitions:
        return registry.get_or_create_definitions(type(self))

    @property
    def path(self) -> str:
        return self.route_definitions.base_path

    @property
    def name(self) -> Optional[str]:
        definitions = self.route_definitions
        return definitions.name or definitions.base_path

    @property
    def module_name(self) -> Optional[str]:
        definitions = self.route_definitions
        return definitions.module_name or self.name

    def get_route_definition(self, method_name: str) -> RouteDefinition:
        route = self.route_definitions.find(method_name)
        if route is None:
            raise Fault(
                code="ROUTE_DEFINITION_NOT_FOUND",
                message=f"{type(self).__name__} has no route definition for {method_name!r}",
                domain=FaultDomain.ROUTING,
            )
        return route

    def get_route_definitions(self) -> RouteDefinitions:
        return self.route_definitions

    def get_routes(self) -> List[RouteDefinition]:
        return self.route_definitions.routes
