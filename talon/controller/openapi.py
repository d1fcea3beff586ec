"""
OpenAPI generation from registered route definitions.

A read-only consumer of the route registry: walks every controller's
``RouteDefinitions`` and produces an OpenAPI 3.1 document.

- paths keyed by base path + suffix, ``:name`` rewritten to ``{name}``
- summary/description derived from the verb and the resource in the path
- path and query parameters (typed from ``params``/``query`` schemas)
- request body ``$ref`` when a ``body`` schema is declared
- bearer security plus 401/403 responses for guarded routes
- ``custom("summary" | "description" | "tags" | "deprecated", ...)``
  overrides the derived values
"""

from typing import Any, Dict, Iterable, List, Optional, Set
from dataclasses import dataclass, field
import logging
import re

from ..validation import get_type_adapter
from .metadata import ParameterSlot, RouteDefinition, RouteDefinitions
from .registry import RouteRegistry, registry as default_registry


logger = logging.getLogger("talon.controller.openapi")

_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_REF_TEMPLATE = "#/components/schemas/{model}"


@dataclass
class OpenAPIConfig:
    """Configuration for OpenAPI spec generation."""
    title: str = "Talon API"
    version: str = "1.0.0"
    description: str = "API documentation"
    servers: List[Dict[str, str]] = field(default_factory=list)
    docs_path: str = "/api-docs"
    openapi_json_path: str = "/api-docs.json"


def to_openapi_path(path: str) -> str:
    """``/items/:id`` -> ``/items/{id}``"""
    return _PARAM_RE.sub(r"{\1}", path)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def resource_name(path: str) -> str:
    segments = [s for s in path.split("/") if s]
    if not segments:
        return "Resource"
    resource = segments[-1]
    if resource.startswith(":"):
        resource = segments[-2] if len(segments) > 1 else "Resource"
    return _capitalize(resource)


def summarize(method: str, path: str) -> str:
    resource = resource_name(path)
    summaries = {
        "GET": f"Get {resource} by ID" if "/:" in path else f"Get all {resource}",
        "POST": f"Create {resource}",
        "PUT": f"Update {resource}",
        "PATCH": f"Partially update {resource}",
        "DELETE": f"Delete {resource}",
    }
    return summaries.get(method.upper(), f"{method.upper()} {resource}")


def describe(method: str, path: str) -> str:
    resource = resource_name(path)
    descriptions = {
        "GET": (
            f"Retrieve a specific {resource} by its ID" if "/:" in path
            else f"Retrieve all {resource} records"
        ),
        "POST": f"Create a new {resource} record",
        "PUT": f"Update an existing {resource} record",
        "PATCH": f"Partially update an existing {resource} record",
        "DELETE": f"Delete a {resource} record",
    }
    return descriptions.get(method.upper(), f"{method.lower()} operation on {resource}")


def controller_tag(definitions: RouteDefinitions) -> str:
    name = definitions.name
    if name and not name.startswith("/"):
        return name
    segments = [s for s in definitions.base_path.split("/") if s]
    return _capitalize(segments[-1]) if segments else "Default"


class OpenAPIGenerator:
    """
    Builds an OpenAPI document from route definitions.

    Usage::

        spec = OpenAPIGenerator(OpenAPIConfig(title="Items")).generate([ItemsController])
    """

    def __init__(self, config: Optional[OpenAPIConfig] = None, registry: Optional[RouteRegistry] = None):
        self.config = config or OpenAPIConfig()
        self.registry = registry or default_registry
        self.schemas: Dict[str, Any] = {}
        self._seen_tags: Set[str] = set()

    def generate(self, controllers: Optional[Iterable[Any]] = None) -> Dict[str, Any]:
        """
        Generate the specification.

        Args:
            controllers: Controller classes or instances; defaults to every
                registered controller.
        """
        self.schemas = {}
        self._seen_tags = set()
        tags: List[Dict[str, Any]] = []
        paths: Dict[str, Dict[str, Any]] = {}

        targets = list(controllers) if controllers is not None else self.registry.controllers()
        for target in targets:
            definitions = self.registry.get_or_create_definitions(target)
            if not definitions.base_path:
                continue
            tag = controller_tag(definitions)
            if tag not in self._seen_tags:
                self._seen_tags.add(tag)
                tags.append({"name": tag})

            for route in definitions.routes:
                if not route.method or not route.path:
                    logger.debug("Skipping %s: no method or path", route.method_name)
                    continue
                full_path = definitions.base_path + route.path
                operation = self._operation(route, full_path, tag)
                paths.setdefault(to_openapi_path(full_path), {})[route.method.lower()] = operation

        spec: Dict[str, Any] = {
            "openapi": "3.1.0",
            "info": {
                "title": self.config.title,
                "description": self.config.description,
                "version": self.config.version,
            },
            "paths": paths,
            "tags": tags,
            "components": {
                "securitySchemes": {
                    "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
                },
                "schemas": self.schemas,
            },
        }
        if self.config.servers:
            spec["servers"] = self.config.servers
        return spec

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _operation(self, route: RouteDefinition, full_path: str, tag: str) -> Dict[str, Any]:
        extra = route.extra_data
        operation: Dict[str, Any] = {
            "summary": extra.get("summary") or summarize(route.method, full_path),
            "description": extra.get("description") or describe(route.method, full_path),
            "operationId": self._operation_id(route, tag),
            "tags": list(extra.get("tags") or [tag]),
            "responses": {
                "200": {
                    "description": "Success",
                    "content": {"application/json": {"schema": {"type": "object"}}},
                },
            },
        }
        if extra.get("deprecated"):
            operation["deprecated"] = True

        parameters = self._path_parameters(route, full_path) + self._query_parameters(route)
        if parameters:
            operation["parameters"] = parameters

        declared_body = route.validation_for(ParameterSlot.BODY)
        if declared_body is not None and route.method in ("POST", "PUT", "PATCH"):
            operation["requestBody"] = {
                "required": True,
                "content": {"application/json": {"schema": self._schema_ref(declared_body[0])}},
            }

        if route.authenticated or route.permissions:
            operation["security"] = [{"bearerAuth": []}]
        if route.authenticated:
            operation["responses"]["401"] = {"description": "Unauthorized"}
        if route.permissions:
            operation["responses"]["403"] = {"description": "Forbidden"}
            operation["x-permissions"] = list(route.permissions)
        operation["responses"]["400"] = {"description": "Bad Request"}
        return operation

    @staticmethod
    def _operation_id(route: RouteDefinition, tag: str) -> str:
        if route.name and route.name != route.path:
            return route.name
        return f"{tag}_{route.method_name}"

    # ------------------------------------------------------------------
    # Parameters & schemas
    # ------------------------------------------------------------------

    def _json_schema(self, schema: Any) -> Dict[str, Any]:
        generated = get_type_adapter(schema).json_schema(ref_template=_REF_TEMPLATE)
        for name, definition in generated.pop("$defs", {}).items():
            self.schemas.setdefault(name, definition)
        return generated

    def _schema_ref(self, schema: Any) -> Dict[str, Any]:
        name = getattr(schema, "__name__", None)
        generated = self._json_schema(schema)
        if not name:
            return generated
        self.schemas.setdefault(name, generated)
        return {"$ref": _REF_TEMPLATE.format(model=name)}

    def _slot_properties(self, route: RouteDefinition, slot: ParameterSlot):
        declared = route.validation_for(slot)
        if declared is None:
            return {}, set()
        generated = self._json_schema(declared[0])
        return generated.get("properties", {}), set(generated.get("required", []))

    def _path_parameters(self, route: RouteDefinition, full_path: str) -> List[Dict[str, Any]]:
        properties, _ = self._slot_properties(route, ParameterSlot.PARAMS)
        return [
            {
                "name": name,
                "in": "path",
                "required": True,
                "schema": properties.get(name, {"type": "string"}),
            }
            for name in _PARAM_RE.findall(full_path)
        ]

    def _query_parameters(self, route: RouteDefinition) -> List[Dict[str, Any]]:
        properties, required = self._slot_properties(route, ParameterSlot.QUERY)
        return [
            {
                "name": name,
                "in": "query",
                "required": name in required,
                "schema": prop,
            }
            for name, prop in properties.items()
        ]


# ─── Swagger UI HTML ─────────────────────────────────────────────────────────

_SWAGGER_UI_VERSION = "5.18.2"

_SWAGGER_UI_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title} - API Documentation</title>
    <link rel="stylesheet"
          href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{version}/swagger-ui.css">
    <style>
        body {{ margin: 0; background: #fafafa; }}
        .topbar {{ display: none !important; }}
    </style>
</head>
<body>
    <div id="swagger-ui"></div>
    <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{version}/swagger-ui-bundle.js">
    </script>
    <script>
        window.onload = () => {{
            window.ui = SwaggerUIBundle({{
                url: '{spec_url}',
                dom_id: '#swagger-ui',
                deepLinking: true,
                docExpansion: 'list',
                filter: true,
                tryItOutEnabled: true,
                persistAuthorization: true,
            }});
        }};
    </script>
</body>
</html>"""


def generate_swagger_html(config: OpenAPIConfig) -> str:
    """Generate the Swagger UI HTML page."""
    return _SWAGGER_UI_HTML.format(
        title=config.title,
        version=_SWAGGER_UI_VERSION,
        spec_url=config.openapi_json_path,
    )
