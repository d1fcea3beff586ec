"""
TalonFaults - typed fault signals.

Faults are exceptions with a stable code, a domain and a severity. Build
time problems surface as ``ConfigurationFault`` and abort startup; request
time problems surface as ``HttpFault`` subclasses and are translated into
JSON responses by ``ExceptionMiddleware``.
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    DependencyFault,
    ContextFault,
)

from .http import (
    HttpFault,
    BadRequestFault,
    UnauthorizedFault,
    PaymentRequiredFault,
    ForbiddenFault,
    NotFoundFault,
    MethodNotAllowedFault,
    NotAcceptableFault,
    ConflictFault,
    GoneFault,
    ExpiredFault,
    LengthRequiredFault,
    PreconditionFailedFault,
    PayloadTooLargeFault,
    UnsupportedMediaTypeFault,
    UnprocessableEntityFault,
    TooManyRequestsFault,
    InternalServerErrorFault,
    NotImplementedFault,
    BadGatewayFault,
    ServiceUnavailableFault,
    GatewayTimeoutFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigurationFault",
    "DependencyFault",
    "ContextFault",

    # HTTP faults
    "HttpFault",
    "BadRequestFault",
    "UnauthorizedFault",
    "PaymentRequiredFault",
    "ForbiddenFault",
    "NotFoundFault",
    "MethodNotAllowedFault",
    "NotAcceptableFault",
    "ConflictFault",
    "GoneFault",
    "ExpiredFault",
    "LengthRequiredFault",
    "PreconditionFailedFault",
    "PayloadTooLargeFault",
    "UnsupportedMediaTypeFault",
    "UnprocessableEntityFault",
    "TooManyRequestsFault",
    "InternalServerErrorFault",
    "NotImplementedFault",
    "BadGatewayFault",
    "ServiceUnavailableFault",
    "GatewayTimeoutFault",
]
