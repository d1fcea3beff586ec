"""
Controller Engine - terminal stage invoking controller methods.

Integrates with:
- talon.controller.metadata for parameter-slot bindings
- talon.request for validated/raw slot values
- talon.response for return-value interpretation
- talon.middleware for error forwarding through ``next(error)``
"""

from typing import Any, Callable, Dict, List
import logging

from ..middleware import _safe_call
from ..response import ResponseDirective
from .metadata import ParameterSlot, RouteDefinition


class RouteHandler:
    """
    Calls one bound controller method with marshaled arguments.

    Arguments:
    - no declared slots: ``(request, response, next)``
    - otherwise a positional list sized to the highest declared index + 1;
      ``req``/``res``/``next`` get the live objects, data slots get the
      validated instance when validation ran, else the raw value;
      undeclared positions get ``None``

    Return values:
    - ``ResponseDirective``: ``build(response)`` writes the response
    - anything else: serialized as JSON unless the handler already answered
      or handed over with ``next()``

    Exceptions are forwarded with ``next(error)``.
    """

    def __init__(self, handler: Callable[..., Any], route: RouteDefinition, owner: str = ""):
        self.handler = handler
        self.route = route
        self.indices: Dict[ParameterSlot, int] = dict(route.parameter_indices)
        self.arity = max(self.indices.values()) + 1 if self.indices else 0
        self.name = f"{owner}.{route.method_name}" if owner else route.method_name
        self.logger = logging.getLogger("talon.controller.engine")

    def build_args(self, request: Any, response: Any, next: Any) -> List[Any]:
        if not self.indices:
            return [request, response, next]

        args: List[Any] = [None] * self.arity
        for slot, index in self.indices.items():
            if slot is ParameterSlot.REQ:
                args[index] = request
            elif slot is ParameterSlot.RES:
                args[index] = response
            elif slot is ParameterSlot.NEXT:
                args[index] = next
            else:
                args[index] = request.value_for(slot)
        return args

    def interpret(self, result: Any, response: Any) -> None:
        if response.headers_sent:
            if isinstance(result, ResponseDirective):
                self.logger.warning("%s returned a directive after writing the response; ignored", self.name)
            return
        if isinstance(result, ResponseDirective):
            result.build(response)
        else:
            response.json(result)

    async def __call__(self, request: Any, response: Any, next: Any) -> None:
        handed_over = False

        def tracked_next(error: Any = None):
            nonlocal handed_over
            handed_over = True
            return next(error)

        try:
            args = self.build_args(request, response, tracked_next)
            result = await _safe_call(self.handler, *args)
            if not handed_over:
                self.interpret(result, response)
        except Exception as exc:
            self.logger.debug("Handler %s raised %r", self.name, exc)
            next(exc)

    def __repr__(self) -> str:
        return f"<RouteHandler {self.name}>"
