"""
Response - mutable response cycle object plus handler return directives.

Provides:
- ``Response``: status, headers and one terminal write (``json``/``send``),
  flushed to ASGI by the router once the chain settles
- Double-send guard: a second terminal write is logged and dropped
- ``ResponseDirective``: explicit "I build the response myself" return type
- ``ResponseBuilder``: fluent stock directive (ok/created/headers/file)
"""

from __future__ import annotations

import dataclasses
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar, Union


logger = logging.getLogger("talon.response")

T = TypeVar("T")


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if hasattr(o, "model_dump"):
        return o.model_dump(mode="json")
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def dumps(data: Any) -> bytes:
    return json.dumps(data, default=_json_default_serializer, separators=(",", ":")).encode("utf-8")


class Response:
    """
    Response cycle object handed to every middleware and handler.

    Exactly one terminal write (``json``, ``send`` or ``end``) is honoured.
    ``headers_sent`` tells later stages that the request has been answered.
    """

    def __init__(self):
        self.status_code: int = 200
        self.headers: Dict[str, str] = {}
        self.body: bytes = b""
        self.headers_sent: bool = False

    def status(self, code: int) -> "Response":
        if self._closed("status"):
            return self
        self.status_code = code
        return self

    def set_header(self, name: str, value: str) -> "Response":
        if self._closed(f"header {name}"):
            return self
        self.headers[name.lower()] = str(value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def json(self, data: Any, status: Optional[int] = None) -> "Response":
        if self._closed("write"):
            return self
        if status is not None:
            self.status_code = status
        self.headers.setdefault("content-type", "application/json")
        self._finish(dumps(data))
        return self

    def send(
        self,
        content: Union[bytes, str, dict, list, None] = None,
        media_type: Optional[str] = None,
        status: Optional[int] = None,
    ) -> "Response":
        """Send raw content. Mappings and lists are sent as JSON."""
        if isinstance(content, (dict, list)):
            return self.json(content, status=status)
        if self._closed("write"):
            return self
        if status is not None:
            self.status_code = status
        if isinstance(content, str):
            self.headers.setdefault("content-type", media_type or "text/plain; charset=utf-8")
            payload = content.encode("utf-8")
        else:
            if media_type:
                self.headers.setdefault("content-type", media_type)
            payload = content or b""
        self._finish(payload)
        return self

    def end(self) -> "Response":
        return self.send(b"")

    def _closed(self, action: str) -> bool:
        if self.headers_sent:
            logger.warning(
                "Response already sent (status %d); dropping %s",
                self.status_code, action,
            )
        return self.headers_sent

    def _finish(self, payload: bytes) -> None:
        self.body = payload
        self.headers_sent = True

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        headers = dict(self.headers)
        headers["content-length"] = str(len(self.body))
        await send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in headers.items()
            ],
        })
        await send({"type": "http.response.body", "body": self.body})

    def __repr__(self) -> str:
        return f"<Response {self.status_code} sent={self.headers_sent}>"


# ============================================================================
# Return directives
# ============================================================================

class ResponseDirective(ABC):
    """
    Handler return value that writes the response itself.

    Any other return value is serialized as JSON by the handler wrapper.
    """

    @abstractmethod
    def build(self, response: Response) -> None:
        """Perform exactly one terminal write on ``response``."""


class ResponseBuilder(ResponseDirective, Generic[T]):
    """
    Fluent response directive.

    Example:
        return ResponseBuilder().created(item).set_header("Location", f"/items/{item.id}")
    """

    def __init__(self):
        self.status: int = 200
        self.data: Optional[T] = None
        self.headers: Dict[str, str] = {}
        self.is_file: bool = False
        self.media_type: Optional[str] = None

    def ok(self, data: T) -> "ResponseBuilder[T]":
        self.status = 200
        self.data = data
        return self

    def created(self, data: T) -> "ResponseBuilder[T]":
        self.status = 201
        self.data = data
        return self

    def with_status(self, status: int, data: Optional[T] = None) -> "ResponseBuilder[T]":
        self.status = status
        if data is not None:
            self.data = data
        return self

    def set_header(self, key: str, value: str) -> "ResponseBuilder[T]":
        self.headers[key] = value
        return self

    def set_headers(self, headers: Dict[str, str]) -> "ResponseBuilder[T]":
        self.headers = {**self.headers, **headers}
        return self

    def as_file(self, media_type: str = "application/octet-stream") -> "ResponseBuilder[T]":
        self.is_file = True
        self.media_type = media_type
        return self

    def build(self, response: Response) -> None:
        for key, value in self.headers.items():
            response.set_header(key, value)
        response.status(self.status)
        if self.is_file and self.data:
            response.send(self.data, media_type=self.media_type)
        else:
            response.json(self.data)
