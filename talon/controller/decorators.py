"""
Controller Decorators

Route, cross-cutting and parameter-slot decorators for controller methods,
plus the ``controller`` class decorator.

Method decorators only record metadata on the function; the owning class
does not exist yet when they run. The declarations are flushed into the
route registry when the class is created (``Controller.__init_subclass__``
or ``@controller``).

Stacking order: decorators apply bottom-up and each one merges with
new-wins precedence for scalars, so the decorator written highest wins a
scalar conflict. List-valued options keep the order they are written in.
"""

from typing import Any, Callable, Iterable, List, Optional, TypeVar, Union
import inspect

from ..faults import ConfigurationFault
from .metadata import (
    CONTROLLER_MODULE,
    CONTROLLER_NAME,
    CONTROLLER_PATH,
    PARAMETER_INDICES,
    ROUTE_OPTIONS,
    MiddlewareEntry,
    ParameterSlot,
    RouteOptions,
    ValidationSpec,
    metadata,
)
from .merge import merge_route_options
from .registry import registry


F = TypeVar('F', bound=Callable[..., Any])
C = TypeVar('C', bound=type)


def _record(func: F, options: RouteOptions) -> F:
    existing = metadata.get(func, ROUTE_OPTIONS)
    metadata.set(func, ROUTE_OPTIONS, merge_route_options(existing, options))
    return func


def route(
    method: Optional[str] = None,
    path: Optional[str] = None,
    *,
    name: Optional[str] = None,
    authenticated: Optional[bool] = None,
    validations: Optional[List[ValidationSpec]] = None,
    permissions: Optional[Iterable[str]] = None,
    middlewares: Optional[List[MiddlewareEntry]] = None,
    extra_data: Optional[dict] = None,
) -> Callable[[F], F]:
    """
    Generic route-option decorator.

    Every other method decorator is sugar over this one.

    Example:
        @route("GET", "/items/:id", permissions=["items:read"])
        async def show(self, params):
            ...
    """
    options = RouteOptions(
        method=method.upper() if method else None,
        path=path,
        name=name,
        authenticated=authenticated,
        validations=list(validations or []),
        permissions=list(permissions or []),
        middlewares=list(middlewares or []),
        extra_data=dict(extra_data) if extra_data is not None else None,
    )

    def decorator(func: F) -> F:
        return _record(func, options)

    return decorator


class RouteDecorator:
    """
    Base HTTP verb decorator.

    Args:
        path: Path suffix, with ``:name`` placeholders (e.g. "/:id")
        name: Display name, defaults to ``path``
    """

    method: Optional[str] = None

    def __init__(self, path: str, name: Optional[str] = None):
        self.path = path
        self.name = name if name is not None else path

    def __call__(self, func: F) -> F:
        return _record(func, RouteOptions(method=self.method, path=self.path, name=self.name))


class GET(RouteDecorator):
    """GET request decorator."""
    method = 'GET'


class POST(RouteDecorator):
    """POST request decorator."""
    method = 'POST'


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = 'PUT'


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = 'PATCH'


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = 'DELETE'


# ============================================================================
# Cross-cutting decorators
# ============================================================================

def validate(
    spec: Union[ValidationSpec, List[ValidationSpec], None] = None,
    *,
    body: Optional[Any] = None,
    query: Optional[Any] = None,
    params: Optional[Any] = None,
    headers: Optional[Any] = None,
    logging: bool = False,
    strict: Optional[bool] = None,
) -> Callable[[F], F]:
    """
    Attach validation schemas to request slots.

    Example:
        @POST("/")
        @validate(body=CreateItem)
        async def create(self, body):
            ...
    """
    specs: List[ValidationSpec] = []
    if isinstance(spec, ValidationSpec):
        specs.append(spec)
    elif spec is not None:
        specs.extend(spec)
    if any(schema is not None for schema in (body, query, params, headers)):
        specs.append(ValidationSpec(
            body=body,
            query=query,
            params=params,
            headers=headers,
            logging=logging,
            strict=strict,
        ))
    return route(validations=specs)


def authenticated(value: Union[bool, F] = True):
    """
    Require an authenticated identity.

    Usable bare (``@authenticated``) or called (``@authenticated(False)``).
    """
    if inspect.isfunction(value):
        return route(authenticated=True)(value)
    return route(authenticated=bool(value))


def authorized(permissions: Union[str, Iterable[str]]) -> Callable[[F], F]:
    """Require at least one of ``permissions``."""
    if isinstance(permissions, str):
        permissions = [permissions]
    return route(permissions=list(permissions))


def middleware(handler: Callable[..., Any], pre: bool = False, order: int = 0) -> Callable[[F], F]:
    """
    Attach an auxiliary ``(request, response, next)`` middleware.

    Pre middleware runs before the auth guards, sorted by ``order``;
    post middleware runs after them in the order written.
    """
    return route(middlewares=[MiddlewareEntry(handler=handler, pre=pre, order=order)])


def custom(key: str, value: Any) -> Callable[[F], F]:
    """Record an arbitrary ``key``/``value`` pair in the route's extra data."""
    return route(extra_data={key: value})


# ============================================================================
# Parameter-slot decorators
# ============================================================================

def _resolve_index(func: Callable[..., Any], index: Union[int, str]) -> int:
    if isinstance(index, int) and not isinstance(index, bool):
        if index < 0:
            raise ConfigurationFault(
                "PARAMETER_INDEX_INVALID",
                f"Parameter index of {func.__qualname__} must be >= 0, got {index}",
            )
        return index

    parameters = list(inspect.signature(inspect.unwrap(func)).parameters)
    if parameters and parameters[0] in ("self", "cls"):
        parameters = parameters[1:]
    if index not in parameters:
        raise ConfigurationFault(
            "PARAMETER_NAME_UNKNOWN",
            f"{func.__qualname__} has no parameter named {index!r}",
        )
    return parameters.index(index)


def _slot_decorator(slot: ParameterSlot) -> Callable[[Union[int, str]], Callable[[F], F]]:
    def factory(index: Union[int, str]) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            indices = dict(metadata.get(func, PARAMETER_INDICES) or {})
            indices[slot] = _resolve_index(func, index)
            metadata.set(func, PARAMETER_INDICES, indices)
            return func
        return decorator

    factory.__name__ = slot.value
    factory.__qualname__ = slot.value
    factory.__doc__ = (
        f"Bind the handler argument at ``index`` (position or name) to the {slot.value!r} slot."
    )
    return factory


req = _slot_decorator(ParameterSlot.REQ)
res = _slot_decorator(ParameterSlot.RES)
next_ = _slot_decorator(ParameterSlot.NEXT)
body = _slot_decorator(ParameterSlot.BODY)
query = _slot_decorator(ParameterSlot.QUERY)
params = _slot_decorator(ParameterSlot.PARAMS)
headers = _slot_decorator(ParameterSlot.HEADERS)


# ============================================================================
# Class decorator
# ============================================================================

def controller(path: str, name: Optional[str] = None, module_name: Optional[str] = None) -> Callable[[C], C]:
    """
    Declare a controller class and its base path.

    ``name`` defaults to ``path`` and ``module_name`` to ``name``.

    Example:
        @controller("/items")
        class ItemsController(Controller):
            @GET("/:id")
            @params("params")
            async def show(self, params):
                return {"id": params.id}
    """
    resolved_name = name if name is not None else path
    resolved_module = module_name if module_name is not None else resolved_name

    def decorator(cls: C) -> C:
        metadata.set(cls, CONTROLLER_PATH, path)
        metadata.set(cls, CONTROLLER_NAME, resolved_name)
        metadata.set(cls, CONTROLLER_MODULE, resolved_module)
        registry.set_base_path(cls, path, resolved_name, resolved_module)
        registry.collect(cls)
        return cls

    return decorator
