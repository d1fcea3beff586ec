"""
ASGI router - the HTTP primitive compiled routes are registered on.

Any object with ``add_route(method, path, middlewares, handler)`` and
``use(middleware)`` satisfies ``HttpRouter``; ``ASGIRouter`` is the
implementation served by uvicorn.

Path syntax: ``:name`` placeholders match one path segment, which may be
empty, and a single trailing slash is optional.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable
import logging
import re

from .middleware import Middleware, run_chain
from .request import Request
from .response import Response


_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def compile_path(path: str) -> "re.Pattern[str]":
    """Compile a ``/items/:id`` style path into an anchored regex."""
    parts = []
    position = 0
    for match in _PARAM_RE.finditer(path):
        parts.append(re.escape(path[position:match.start()]))
        parts.append(f"(?P<{match.group(1)}>[^/]*)")
        position = match.end()
    parts.append(re.escape(path[position:].rstrip("/")))
    return re.compile("^" + "".join(parts) + "/?$")


def path_parameters(path: str) -> List[str]:
    """Placeholder names in declaration order."""
    return _PARAM_RE.findall(path)


@runtime_checkable
class HttpRouter(Protocol):
    """Capability the route compiler registers routes on."""

    def add_route(self, method: str, path: str, middlewares: List[Middleware], handler: Middleware) -> None:
        ...

    def use(self, middleware: Middleware) -> None:
        ...


class Route:
    """One registered ``(method, path)`` with its middleware chain."""

    __slots__ = ("method", "path", "pattern", "chain")

    def __init__(self, method: str, path: str, chain: List[Middleware]):
        self.method = method.upper()
        self.path = path
        self.pattern = compile_path(path)
        self.chain = chain

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if method != self.method:
            return None
        found = self.pattern.match(path)
        if found is None:
            return None
        return found.groupdict()

    def __repr__(self) -> str:
        return f"<Route {self.method} {self.path}>"


class ASGIRouter:
    """
    ASGI 3 application with Express-style routing.

    Global middleware (``use``) runs for every request, then matching
    routes are tried in registration order. A route whose chain falls
    through hands over to the next match; when nothing answers, a 404 JSON
    body is sent.
    """

    def __init__(self, max_body_size: Optional[int] = None):
        self.routes: List[Route] = []
        self.middlewares: List[Middleware] = []
        self.max_body_size = max_body_size
        self.on_startup: List[Callable[[], Any]] = []
        self.on_shutdown: List[Callable[[], Any]] = []
        self.logger = logging.getLogger("talon.asgi")

    # ------------------------------------------------------------------
    # HttpRouter
    # ------------------------------------------------------------------

    def add_route(self, method: str, path: str, middlewares: List[Middleware], handler: Middleware) -> None:
        route = Route(method, path, [*middlewares, handler])
        self.routes.append(route)
        self.logger.debug("Registered %s %s (%d stages)", route.method, path, len(route.chain))

    def use(self, middleware: Middleware) -> None:
        self.middlewares.append(middleware)

    def add_event_handler(self, event: str, func: Callable[[], Any]) -> None:
        if event == "startup":
            self.on_startup.append(func)
        elif event == "shutdown":
            self.on_shutdown.append(func)
        else:
            raise ValueError(f"Unknown event {event!r}")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, request: Request, response: Response, next: Callable[..., Awaitable[None]]) -> None:
        await request.load()
        for route in self.routes:
            params = route.match(request.method, request.path)
            if params is None:
                continue
            request.params = params
            request.state["route"] = route.path
            fell_through = await run_chain(route.chain, request, response)
            if not fell_through or response.headers_sent:
                return
        await next()

    async def _not_found(self, request: Request, response: Response, next: Callable[..., Awaitable[None]]) -> None:
        response.json({"message": "Not Found"}, status=404)

    async def handle(self, request: Request) -> Response:
        """Run the full pipeline for ``request`` and return the response."""
        response = Response()
        try:
            await run_chain([*self.middlewares, self._dispatch, self._not_found], request, response)
        except Exception:
            self.logger.error("Unhandled error in request pipeline for %r", request, exc_info=True)
            if not response.headers_sent:
                response.json({"message": "Internal server error"}, status=500)

        if not response.headers_sent:
            self.logger.error("No response was sent for %s %s", request.method, request.path)
            response.json({"message": "No response was sent"}, status=500)
        return response

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            request = Request(scope, receive, max_body_size=self.max_body_size)
            response = await self.handle(request)
            await response.send_asgi(send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type %r", scope_type)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    for func in self.on_startup:
                        result = func()
                        if hasattr(result, "__await__"):
                            await result
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    for func in self.on_shutdown:
                        result = func()
                        if hasattr(result, "__await__"):
                            await result
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
