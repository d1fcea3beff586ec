"""
Middleware system - ``(request, response, next)`` chains.

A middleware either answers the request through ``response``, calls
``await next()`` to hand over to the following stage, or signals an error
by raising or calling ``next(error)``. Errors travel outwards to
``ExceptionMiddleware``, the boundary translator.

Integrates with:
- talon.faults for typed error translation
- talon.context for trace id propagation
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional, Sequence, TYPE_CHECKING
import inspect
import logging
import time

from .context import RequestContext, generate_trace_id, run_in_context
from .faults import Fault, FaultDomain, HttpFault

if TYPE_CHECKING:
    from .request import Request
    from .response import Response

Next = Callable[..., Awaitable[None]]
Middleware = Callable[["Request", "Response", Next], Any]


logger = logging.getLogger("talon.middleware")


async def _safe_call(func: Any, *args, **kwargs) -> Any:
    """Call a sync or async callable and await the result when needed."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


class _Continuation:
    """Awaitable returned by ``next()``; runs the rest of the chain once."""

    __slots__ = ("_step", "started")

    def __init__(self, step: Callable[[], Awaitable[None]]):
        self._step = step
        self.started = False

    def __await__(self):
        self.started = True
        return self._step().__await__()


async def run_chain(middlewares: Sequence[Middleware], request: "Request", response: "Response") -> bool:
    """
    Run ``middlewares`` in order.

    Sync middleware may call ``next()`` without awaiting it; the rest of
    the chain then runs right after the middleware returns.

    Returns:
        True when the last stage called ``next()`` (nothing handled the
        request), False otherwise.
    """
    fell_through = False

    async def dispatch(index: int) -> None:
        nonlocal fell_through
        if index >= len(middlewares):
            fell_through = True
            return

        continuation: Optional[_Continuation] = None

        def next_(error: Optional[BaseException] = None) -> _Continuation:
            nonlocal continuation
            if error is not None:
                raise error
            if continuation is not None:
                logger.warning(
                    "next() called more than once by %r on %s %s",
                    middlewares[index], request.method, request.path,
                )
                return _Continuation(_noop)
            continuation = _Continuation(lambda: dispatch(index + 1))
            return continuation

        await _safe_call(middlewares[index], request, response, next_)
        if continuation is not None and not continuation.started:
            await continuation

    await dispatch(0)
    return fell_through


async def _noop() -> None:
    return None


# ============================================================================
# Default middleware implementations
# ============================================================================

class ExceptionMiddleware:
    """
    Boundary error translator; install it outermost.

    - ``HttpFault``: its own status and ``{errorId?, message, validationErrors?}`` body
    - other ``Fault``: status by domain, message only when the fault is public
    - anything else: 500 ``{"message": "Internal server error"}``

    Stack traces never reach the client. When the response has already
    been sent the error is only logged.
    """

    DOMAIN_STATUS = {
        FaultDomain.ROUTING: 404,
        FaultDomain.SECURITY: 403,
        FaultDomain.CONFIG: 500,
        FaultDomain.DI: 500,
        FaultDomain.FLOW: 500,
        FaultDomain.SYSTEM: 500,
    }

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("talon.exceptions")

    async def __call__(self, request: "Request", response: "Response", next: Next) -> None:
        try:
            await next()
        except Exception as exc:
            self.handle(exc, request, response)

    def translate(self, exc: BaseException):
        """Map an exception to ``(status, body)``."""
        if isinstance(exc, HttpFault):
            return exc.status, exc.body()
        if isinstance(exc, Fault):
            status = self.DOMAIN_STATUS.get(exc.domain, 500)
            message = exc.message if (exc.public or self.debug) else "Internal server error"
            return status, {"message": message, "code": exc.code}
        body = {"message": "Internal server error"}
        if self.debug:
            body["detail"] = str(exc)
        return 500, body

    def handle(self, exc: BaseException, request: "Request", response: "Response") -> None:
        status, body = self.translate(exc)

        if status >= 500:
            self.logger.error(
                "%s %s failed: %s", request.method, request.path, exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            self.logger.warning("%s %s -> %d: %s", request.method, request.path, status, exc)

        if response.headers_sent:
            self.logger.error(
                "Error raised after response was sent for %s %s", request.method, request.path,
            )
            return
        response.json(body, status=status)


class ContextMiddleware:
    """
    Opens the per-request ambient context.

    Reuses an incoming ``X-Trace-Id`` header or generates one, and echoes
    it on the response.
    """

    def __init__(self, header_name: str = "X-Trace-Id"):
        self.header_name = header_name

    async def __call__(self, request: "Request", response: "Response", next: Next) -> None:
        trace_id = request.headers.get(self.header_name) or generate_trace_id()
        request.state["trace_id"] = trace_id
        response.set_header(self.header_name, trace_id)

        async def proceed() -> None:
            await next()

        await run_in_context(RequestContext(trace_id=trace_id), proceed)


class LoggingMiddleware:
    """Logs request/response with timing."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("talon.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: "Request", response: "Response", next: Next) -> None:
        if not self.logger.isEnabledFor(logging.INFO):
            await next()
            return

        start = time.monotonic()
        try:
            await next()
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            self.logger.info(
                "%s %s - %d (%.1fms)",
                request.method, request.path, response.status_code, elapsed_ms,
            )
            if elapsed_ms > self.slow_threshold_ms:
                self.logger.warning(
                    "Slow request: %s %s took %.1fms",
                    request.method, request.path, elapsed_ms,
                )


class CORSMiddleware:
    """Handles CORS headers."""

    def __init__(
        self,
        allow_origins: Optional[List[str]] = None,
        allow_methods: Optional[List[str]] = None,
        allow_headers: Optional[List[str]] = None,
        allow_credentials: bool = False,
        max_age: int = 3600,
    ):
        self.allow_origins = allow_origins or ["*"]
        self.allow_methods = allow_methods or ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
        self.allow_headers = allow_headers or ["*"]
        self.allow_credentials = allow_credentials
        self.max_age = max_age

    async def __call__(self, request: "Request", response: "Response", next: Next) -> None:
        origin = request.headers.get("origin")
        if origin and self._is_allowed_origin(origin):
            response.set_header("access-control-allow-origin", origin)
        elif "*" in self.allow_origins:
            response.set_header("access-control-allow-origin", "*")

        if self.allow_credentials:
            response.set_header("access-control-allow-credentials", "true")

        if request.method == "OPTIONS" and request.headers.get("access-control-request-method"):
            response.set_header("access-control-allow-methods", ", ".join(self.allow_methods))
            response.set_header("access-control-allow-headers", ", ".join(self.allow_headers))
            response.set_header("access-control-max-age", str(self.max_age))
            response.status(204).end()
            return

        await next()

    def _is_allowed_origin(self, origin: str) -> bool:
        return "*" in self.allow_origins or origin in self.allow_origins
