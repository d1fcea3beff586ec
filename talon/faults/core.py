"""
TalonFaults - fault base type and the faults raised while building an app.

Every error Talon raises on purpose is a ``Fault``: it carries a stable
code, a domain and a severity so the boundary translator can pick a status
and a log level without string matching.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class Severity(str, Enum):
    """How loudly a fault is logged at the boundary."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain(str, Enum):
    """Functional area a fault belongs to."""

    CONFIG = "config"
    DI = "di"
    ROUTING = "routing"
    FLOW = "flow"
    SECURITY = "security"
    HTTP = "http"
    SYSTEM = "system"

    @property
    def default_severity(self) -> Severity:
        return _SEVERITY_BY_DOMAIN.get(self, Severity.ERROR)


_SEVERITY_BY_DOMAIN: Dict[FaultDomain, Severity] = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.ROUTING: Severity.WARN,
    FaultDomain.SECURITY: Severity.WARN,
    FaultDomain.HTTP: Severity.WARN,
    FaultDomain.SYSTEM: Severity.FATAL,
}


class Fault(Exception):
    """
    Structured error value.

    ``public`` marks faults whose message may be shown to clients; anything
    else is reported as a generic internal error.

    Example:
        ```python
        raise Fault(
            code="ITEM_NOT_FOUND",
            message="Item 123 not found",
            domain=FaultDomain.FLOW,
            public=True,
        )
        ```
    """

    def __init__(
        self,
        code: str,
        message: str,
        domain: FaultDomain,
        *,
        severity: Optional[Severity] = None,
        public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity or domain.default_severity
        self.public = public
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} domain={self.domain.value} severity={self.severity.value}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# Build-time faults
# ============================================================================

class ConfigurationFault(Fault):
    """
    A controller or route declaration cannot be compiled.

    Raised during ``build()``; startup aborts instead of serving 404s for
    half-declared routes.
    """

    def __init__(self, code: str, message: str, **metadata: Any):
        super().__init__(code, message, FaultDomain.CONFIG, severity=Severity.FATAL, metadata=metadata)


class DependencyFault(Fault):
    """Raised when a DI token cannot be resolved."""

    def __init__(self, token: Any):
        name = getattr(token, "__name__", None) or repr(token)
        super().__init__(
            "DI_UNRESOLVED",
            f"No provider registered for {name}",
            FaultDomain.DI,
            metadata={"token": name},
        )


class ContextFault(Fault):
    """Raised when per-request context is written outside of a request."""

    def __init__(self, message: str = "No active request context"):
        super().__init__("CONTEXT_INACTIVE", message, FaultDomain.FLOW)
