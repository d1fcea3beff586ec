"""
Talon Controller System

Decorator-driven controllers: methods declare routes, parameter slots,
validation, auth requirements and auxiliary middleware; the compiler turns
the declarations into one middleware chain per route at startup.

Example:
    from talon import Controller, controller, GET, POST, validate, authorized, body, params

    @controller("/items")
    class ItemsController(Controller):
        @GET("/:id")
        @validate(params=ItemParams)
        @params(0)
        async def show(self, params):
            return {"id": params.id}

        @POST("/")
        @authorized("items:write")
        @validate(body=CreateItem)
        @body("payload")
        async def create(self, payload):
            return ResponseBuilder().created(payload)
"""

from .base import Controller
from .decorators import (
    GET, POST, PUT, PATCH, DELETE,
    RouteDecorator,
    route,
    validate,
    authenticated,
    authorized,
    middleware,
    custom,
    req,
    res,
    next_,
    body,
    query,
    params,
    headers,
    controller,
)
from .metadata import (
    ParameterSlot,
    ValidationSpec,
    MiddlewareEntry,
    RouteOptions,
    RouteDefinition,
    RouteDefinitions,
    MetadataStore,
    metadata,
)
from .merge import (
    ExtraValueKind,
    merge_extra_data,
    merge_route_options,
    unify,
)
from .registry import RouteRegistry, registry
from .engine import RouteHandler
from .compiler import (
    ControllerCompiler,
    CompiledRoute,
    CompiledController,
    PreStagePlacement,
)
from .openapi import OpenAPIConfig, OpenAPIGenerator, generate_swagger_html

__all__ = [
    # Base
    "Controller",

    # Decorators
    "GET", "POST", "PUT", "PATCH", "DELETE",
    "RouteDecorator",
    "route",
    "validate",
    "authenticated",
    "authorized",
    "middleware",
    "custom",
    "req", "res", "next_", "body", "query", "params", "headers",
    "controller",

    # Metadata
    "ParameterSlot",
    "ValidationSpec",
    "MiddlewareEntry",
    "RouteOptions",
    "RouteDefinition",
    "RouteDefinitions",
    "MetadataStore",
    "metadata",

    # Merge
    "ExtraValueKind",
    "merge_extra_data",
    "merge_route_options",
    "unify",

    # Registry
    "RouteRegistry",
    "registry",

    # Compilation
    "RouteHandler",
    "ControllerCompiler",
    "CompiledRoute",
    "CompiledController",
    "PreStagePlacement",

    # Documentation
    "OpenAPIConfig",
    "OpenAPIGenerator",
    "generate_swagger_html",
]
