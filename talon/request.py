"""
Request - ASGI request wrapper seen by middleware and handlers.

Provides:
- Method, path, case-insensitive headers and parsed query
- Path parameters, filled in by the router on match
- Body buffered once, parsed lazily (JSON, urlencoded form)
- Request-scoped ``state`` plus identity markers (``authenticated``, ``user``)
- Per-slot validated results that never overwrite the raw values
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING, Union
from urllib.parse import parse_qsl

from ._datastructures import Headers, parse_query
from .controller.metadata import ParameterSlot
from .faults import BadRequestFault, PayloadTooLargeFault

if TYPE_CHECKING:
    from .auth.core import Identity


_UNSET = object()


class Request:
    """
    HTTP request for one ASGI ``http`` scope.

    The body must be buffered with ``await request.load()`` before the
    synchronous ``body`` property is read; the router does this before
    running any middleware.
    """

    def __init__(
        self,
        scope: Dict[str, Any],
        receive: Optional[Callable[[], Awaitable[dict]]] = None,
        *,
        max_body_size: Optional[int] = None,
    ):
        self.scope = scope
        self._receive = receive
        self.max_body_size = max_body_size
        self.method: str = scope.get("method", "GET").upper()
        self.path: str = scope.get("path", "/")
        self.headers = Headers(list(scope.get("headers", [])))
        self.query: Dict[str, Any] = parse_query(scope.get("query_string", b""))
        self.params: Dict[str, str] = {}
        self.state: Dict[str, Any] = {}

        # Identity markers, stamped by identity resolution or guards
        self.authenticated: bool = False
        self.user: Optional["Identity"] = None

        # Per-slot validated values
        self.validated_body: Any = None
        self.validated_query: Any = None
        self.validated_params: Any = None
        self.validated_headers: Any = None
        self._validated_slots: set = set()

        self._raw_body: Optional[bytes] = None
        self._body: Any = _UNSET

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    async def load(self) -> bytes:
        """Buffer the full request body (idempotent)."""
        if self._raw_body is not None:
            return self._raw_body
        chunks = []
        size = 0
        if self._receive is not None:
            while True:
                message = await self._receive()
                if message["type"] != "http.request":
                    break
                chunk = message.get("body", b"")
                size += len(chunk)
                if self.max_body_size is not None and size > self.max_body_size:
                    raise PayloadTooLargeFault(f"Body exceeds {self.max_body_size} bytes")
                chunks.append(chunk)
                if not message.get("more_body", False):
                    break
        self._raw_body = b"".join(chunks)
        return self._raw_body

    @property
    def raw_body(self) -> bytes:
        return self._raw_body or b""

    @property
    def content_type(self) -> str:
        return (self.headers.get("content-type") or "").split(";")[0].strip().lower()

    @property
    def body(self) -> Any:
        """
        Parsed body: JSON value, form dict, or ``{}`` when empty.

        Raises:
            BadRequestFault: Malformed JSON payload
        """
        if self._body is _UNSET:
            self._body = self._parse_body()
        return self._body

    @body.setter
    def body(self, value: Any) -> None:
        self._body = value

    def _parse_body(self) -> Any:
        raw = self.raw_body
        if not raw.strip():
            return {}
        content_type = self.content_type
        if content_type == "application/x-www-form-urlencoded":
            return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
        if content_type in ("", "application/json") or content_type.endswith("+json"):
            try:
                return json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise BadRequestFault(f"Invalid JSON body: {exc}") from exc
        return raw.decode("utf-8", errors="replace")

    async def json(self) -> Any:
        await self.load()
        return self.body

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    def raw(self, slot: Union[ParameterSlot, str]) -> Any:
        """Unvalidated source value of a data slot."""
        slot = ParameterSlot(slot)
        if slot is ParameterSlot.BODY:
            return self.body
        if slot is ParameterSlot.QUERY:
            return self.query
        if slot is ParameterSlot.PARAMS:
            return self.params
        if slot is ParameterSlot.HEADERS:
            return self.headers.to_dict()
        raise ValueError(f"{slot.value!r} is not a data slot")

    def set_validated(self, slot: Union[ParameterSlot, str], value: Any) -> None:
        slot = ParameterSlot(slot)
        setattr(self, f"validated_{slot.value}", value)
        self._validated_slots.add(slot)

    def is_validated(self, slot: Union[ParameterSlot, str]) -> bool:
        return ParameterSlot(slot) in self._validated_slots

    def value_for(self, slot: Union[ParameterSlot, str]) -> Any:
        """Validated value of ``slot`` when validation ran, else the raw value."""
        slot = ParameterSlot(slot)
        if slot in self._validated_slots:
            return getattr(self, f"validated_{slot.value}")
        return self.raw(slot)

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
