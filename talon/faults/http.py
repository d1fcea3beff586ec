"""
HTTP faults - typed exceptions carrying their own status and body.

Handlers and guards raise these; ExceptionMiddleware translates them into
``{errorId?, message, validationErrors?}`` JSON bodies with the carried
status code.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, List, Optional

from .core import Fault, FaultDomain, Severity


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Server error" if status >= 500 else "Client error"


class HttpFault(Fault):
    """
    Fault with an HTTP status code and a client-safe body.

    Args:
        message: Client-visible message. Defaults to the status phrase.
        status: HTTP status code (class default used when omitted).
        error_id: Optional numeric application error id.
        validation_errors: Optional list of ``{"field", "errors"}`` records.

    Example:
        ```python
        raise NotFoundFault("Item 42 not found", error_id=1004)
        ```
    """

    status: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status: Optional[int] = None,
        error_id: Optional[int] = None,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
    ):
        if status is not None:
            self.status = status
        phrase = _reason_phrase(self.status)
        self.error_id = error_id
        self.validation_errors = validation_errors
        super().__init__(
            code=f"HTTP_{self.status}",
            message=message or phrase,
            domain=FaultDomain.HTTP,
            severity=Severity.ERROR if self.status >= 500 else Severity.WARN,
            public=True,
        )

    @classmethod
    def from_body(cls, body: Dict[str, Any], status: Optional[int] = None) -> "HttpFault":
        """Build a fault from an ``{errorId?, message?, validationErrors?}`` mapping."""
        return cls(
            body.get("message"),
            status=status,
            error_id=body.get("errorId"),
            validation_errors=body.get("validationErrors"),
        )

    def body(self) -> Dict[str, Any]:
        """Client-facing JSON body."""
        data: Dict[str, Any] = {}
        if self.error_id is not None:
            data["errorId"] = self.error_id
        data["message"] = self.message
        if self.validation_errors:
            data["validationErrors"] = self.validation_errors
        return data


class BadRequestFault(HttpFault):
    status = 400


class UnauthorizedFault(HttpFault):
    status = 401


class PaymentRequiredFault(HttpFault):
    status = 402


class ForbiddenFault(HttpFault):
    status = 403


class NotFoundFault(HttpFault):
    status = 404


class MethodNotAllowedFault(HttpFault):
    status = 405


class NotAcceptableFault(HttpFault):
    status = 406


class ConflictFault(HttpFault):
    status = 409


class GoneFault(HttpFault):
    status = 410


class ExpiredFault(HttpFault):
    """Resource has expired (410)."""
    status = 410


class LengthRequiredFault(HttpFault):
    status = 411


class PreconditionFailedFault(HttpFault):
    status = 412


class PayloadTooLargeFault(HttpFault):
    status = 413


class UnsupportedMediaTypeFault(HttpFault):
    status = 415


class UnprocessableEntityFault(HttpFault):
    status = 422


class TooManyRequestsFault(HttpFault):
    status = 429


class InternalServerErrorFault(HttpFault):
    status = 500


class NotImplementedFault(HttpFault):
    status = 501


class BadGatewayFault(HttpFault):
    status = 502


class ServiceUnavailableFault(HttpFault):
    status = 503


class GatewayTimeoutFault(HttpFault):
    status = 504
