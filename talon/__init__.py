"""
Talon - decorator-driven controllers for async Python web services

Integration of:
- Controllers: route, validation, auth and middleware declarations on methods
- Compiler: one middleware chain per route, built once at startup
- Validation: pydantic-backed request slots with field-level error bodies
- Faults: typed errors translated into JSON responses at the boundary
- OpenAPI: documentation generated from the same declarations
"""

__version__ = "0.1.0"

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    DependencyFault,
    ContextFault,
    HttpFault,
    BadRequestFault,
    UnauthorizedFault,
    ForbiddenFault,
    NotFoundFault,
    ConflictFault,
    UnprocessableEntityFault,
    InternalServerErrorFault,
)

# ============================================================================
# Controllers (loaded before request/validation, which read its metadata)
# ============================================================================

from .controller import (
    Controller,
    controller,
    route,
    RouteDecorator,
    GET, POST, PUT, PATCH, DELETE,
    validate,
    authenticated,
    authorized,
    middleware,
    custom,
    req, res, next_, body, query, params, headers,
    ParameterSlot,
    ValidationSpec,
    MiddlewareEntry,
    RouteOptions,
    RouteDefinition,
    RouteDefinitions,
    ExtraValueKind,
    RouteRegistry,
    registry,
    ControllerCompiler,
    CompiledRoute,
    CompiledController,
    PreStagePlacement,
    OpenAPIConfig,
    OpenAPIGenerator,
)

# ============================================================================
# HTTP primitive
# ============================================================================

from .request import Request
from .response import Response, ResponseDirective, ResponseBuilder
from .middleware import (
    run_chain,
    ExceptionMiddleware,
    ContextMiddleware,
    LoggingMiddleware,
    CORSMiddleware,
)
from .asgi import ASGIRouter, HttpRouter
from .validation import validation_middleware

# ============================================================================
# Auth, context, DI, config
# ============================================================================

from .auth import (
    Identity,
    HeaderIdentityMiddleware,
    AuthenticatedGuard,
    AuthorizedGuard,
)
from .context import (
    RequestContext,
    get_context,
    get_trace_id,
    get_context_value,
    set_context_value,
    TraceIdLogFilter,
)
from .di import Container, Resolver
from .discovery import ControllerScanner, discover_controllers
from .config import AppConfig, ConfigLoader, ConfigError
from .app import Application, build_app


__all__ = [
    "__version__",

    # Faults
    "Fault", "FaultDomain", "Severity",
    "ConfigurationFault", "DependencyFault", "ContextFault",
    "HttpFault", "BadRequestFault", "UnauthorizedFault", "ForbiddenFault",
    "NotFoundFault", "ConflictFault", "UnprocessableEntityFault",
    "InternalServerErrorFault",

    # Controllers
    "Controller", "controller", "route", "RouteDecorator",
    "GET", "POST", "PUT", "PATCH", "DELETE",
    "validate", "authenticated", "authorized", "middleware", "custom",
    "req", "res", "next_", "body", "query", "params", "headers",
    "ParameterSlot", "ValidationSpec", "MiddlewareEntry",
    "RouteOptions", "RouteDefinition", "RouteDefinitions", "ExtraValueKind",
    "RouteRegistry", "registry",
    "ControllerCompiler", "CompiledRoute", "CompiledController", "PreStagePlacement",
    "OpenAPIConfig", "OpenAPIGenerator",

    # HTTP
    "Request", "Response", "ResponseDirective", "ResponseBuilder",
    "run_chain", "ExceptionMiddleware", "ContextMiddleware",
    "LoggingMiddleware", "CORSMiddleware",
    "ASGIRouter", "HttpRouter", "validation_middleware",

    # Auth / context / DI / config
    "Identity", "HeaderIdentityMiddleware", "AuthenticatedGuard", "AuthorizedGuard",
    "RequestContext", "get_context", "get_trace_id",
    "get_context_value", "set_context_value", "TraceIdLogFilter",
    "Container", "Resolver", "ControllerScanner", "discover_controllers",
    "AppConfig", "ConfigLoader", "ConfigError",
    "Application", "build_app",
]
