"""
Per-request ambient context.

Backed by ``contextvars`` so values follow the request through awaits and
into tasks it spawns, and are never visible to concurrent requests.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .faults import ContextFault


@dataclass
class RequestContext:
    """Ambient values for one logical request."""
    trace_id: str
    values: Dict[str, Any] = field(default_factory=dict)


_current: ContextVar[Optional[RequestContext]] = ContextVar("talon_request_context", default=None)


def get_context() -> Optional[RequestContext]:
    return _current.get()


def get_trace_id() -> Optional[str]:
    context = _current.get()
    return context.trace_id if context is not None else None


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def run_in_context(context: RequestContext, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run ``fn`` with ``context`` active.

    Coroutine functions return an awaitable that activates the context
    for its whole execution; plain functions run immediately.
    """
    if inspect.iscoroutinefunction(fn):
        async def runner():
            token = _current.set(context)
            try:
                return await fn(*args, **kwargs)
            finally:
                _current.reset(token)
        return runner()

    token = _current.set(context)
    try:
        return fn(*args, **kwargs)
    finally:
        _current.reset(token)


def set_context_value(key: str, value: Any) -> None:
    """
    Store ``value`` in the active request context.

    Raises:
        ContextFault: Called outside of a request
    """
    context = _current.get()
    if context is None:
        raise ContextFault("Cannot set context value: not in a request context")
    context.values[key] = value


def get_context_value(key: str, default: Any = None) -> Any:
    context = _current.get()
    if context is None:
        return default
    if key == "trace_id":
        return context.trace_id
    return context.values.get(key, default)


class TraceIdLogFilter(logging.Filter):
    """Stamps ``record.trace_id`` with the active trace id (or ``-``)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id() or "-"
        return True
