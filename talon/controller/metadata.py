"""
Controller Metadata

Data model for declared routes plus the associative store the decorators
write into. Nothing here performs routing; the compiler reads these
structures once at startup.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


# Metadata keys
CONTROLLER_PATH = "talon:controller:path"
CONTROLLER_NAME = "talon:controller:name"
CONTROLLER_MODULE = "talon:controller:module"
ROUTE_OPTIONS = "talon:route:options"
PARAMETER_INDICES = "talon:route:parameters"


class ParameterSlot(str, Enum):
    """Request-derived values a handler argument can be bound to."""

    REQ = "req"
    RES = "res"
    NEXT = "next"
    BODY = "body"
    QUERY = "query"
    PARAMS = "params"
    HEADERS = "headers"


# Validation runs in this slot order
VALIDATION_SLOTS: Tuple[ParameterSlot, ...] = (
    ParameterSlot.PARAMS,
    ParameterSlot.QUERY,
    ParameterSlot.BODY,
    ParameterSlot.HEADERS,
)


@dataclass(frozen=True)
class ValidationSpec:
    """
    Schema descriptors per request slot.

    Each descriptor is anything ``pydantic.TypeAdapter`` accepts
    (``BaseModel`` subclasses, dataclasses, ``TypedDict``...).

    Attributes:
        body, query, params, headers: Schema for that slot, or None
        logging: Log raw and transformed values at INFO level
        strict: Use pydantic strict mode instead of lax coercion
    """
    body: Optional[Any] = None
    query: Optional[Any] = None
    params: Optional[Any] = None
    headers: Optional[Any] = None
    logging: bool = False
    strict: Optional[bool] = None

    def schema_for(self, slot: ParameterSlot) -> Optional[Any]:
        return getattr(self, slot.value, None)

    def slots(self) -> Iterator[Tuple[ParameterSlot, Any]]:
        """Yield ``(slot, schema)`` for every slot this spec targets."""
        for slot in VALIDATION_SLOTS:
            schema = self.schema_for(slot)
            if schema is not None:
                yield slot, schema


@dataclass(frozen=True)
class MiddlewareEntry:
    """
    Auxiliary middleware attached to a route.

    Attributes:
        handler: ``(request, response, next)`` callable
        pre: Run in the pre-stage (sorted by ``order``) instead of post-stage
        order: Sort key within the pre-stage
    """
    handler: Callable[..., Any]
    pre: bool = False
    order: int = 0


@dataclass
class RouteOptions:
    """
    Partial route declaration contributed by one decorator application.

    ``None`` scalars and empty collections mean "not supplied" and never
    overwrite existing values when merged.
    """
    method: Optional[str] = None
    path: Optional[str] = None
    name: Optional[str] = None
    authenticated: Optional[bool] = None
    validations: List[ValidationSpec] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    middlewares: List[MiddlewareEntry] = field(default_factory=list)
    extra_data: Optional[Dict[str, Any]] = None


@dataclass
class RouteDefinition:
    """
    Canonical declaration of one controller method.

    Attributes:
        method_name: Attribute name of the handler on the controller
        method: HTTP verb (upper case)
        path: Path suffix appended to the controller base path
        name: Display name (defaults to the path)
        authenticated: Whether the authentication guard runs
        validations: Validation specs, top-down as written
        permissions: Required permissions (any one suffices)
        middlewares: Auxiliary middleware entries, top-down as written
        extra_data: Open-ended data for custom decorators and documentation
        parameter_indices: Slot -> positional handler argument index
    """
    method_name: str
    method: Optional[str] = None
    path: Optional[str] = None
    name: Optional[str] = None
    authenticated: bool = False
    validations: List[ValidationSpec] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    middlewares: List[MiddlewareEntry] = field(default_factory=list)
    extra_data: Dict[str, Any] = field(default_factory=dict)
    parameter_indices: Dict[ParameterSlot, int] = field(default_factory=dict)

    def validation_for(self, slot: ParameterSlot) -> Optional[Tuple[Any, ValidationSpec]]:
        """First ``(schema, spec)`` declared for ``slot``, if any."""
        for spec in self.validations:
            schema = spec.schema_for(slot)
            if schema is not None:
                return schema, spec
        return None


@dataclass
class RouteDefinitions:
    """
    All route declarations of one controller class.

    ``routes`` keeps the order in which methods were first registered.
    """
    base_path: str = ""
    name: Optional[str] = None
    module_name: Optional[str] = None
    routes: List[RouteDefinition] = field(default_factory=list)

    def find(self, method_name: str) -> Optional[RouteDefinition]:
        for route in self.routes:
            if route.method_name == method_name:
                return route
        return None


class MetadataStore:
    """
    Process-wide associative storage keyed by ``(target, member, key)``.

    Targets are classes or functions, compared by identity. Values are
    stored as-is; writes are visible to every later read.
    """

    def __init__(self):
        self._data: Dict[Any, Dict[Tuple[Optional[str], str], Any]] = {}

    def set(self, target: Any, key: str, value: Any, member: Optional[str] = None) -> None:
        self._data.setdefault(target, {})[(member, key)] = value

    def get(self, target: Any, key: str, member: Optional[str] = None, default: Any = None) -> Any:
        entries = self._data.get(target)
        if entries is None:
            return default
        return entries.get((member, key), default)

    def has(self, target: Any, key: str, member: Optional[str] = None) -> bool:
        entries = self._data.get(target)
        return entries is not None and (member, key) in entries

    def keys(self, target: Any) -> List[Tuple[Optional[str], str]]:
        return list(self._data.get(target, {}))

    def __contains__(self, target: Any) -> bool:
        return target in self._data


metadata = MetadataStore()
