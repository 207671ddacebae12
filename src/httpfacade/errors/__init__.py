"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- HttpFacadeError hierarchy for typed exceptions
- Classification utilities for log tagging
"""

from httpfacade.errors.exceptions import (
    ConnectionOpenError,
    # Enums
    ErrorCategory,
    # Base classes
    HttpFacadeError,
    MalformedURLError,
    PermanentError,
    ProtocolViolationError,
    TransferError,
    TransientError,
    TrustBuildError,
    # Classification utilities
    classify_exception,
    classify_http_status,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "HttpFacadeError",
    "TransientError",
    "PermanentError",
    # Request lifecycle errors
    "ConnectionOpenError",
    "TransferError",
    "ProtocolViolationError",
    "MalformedURLError",
    "TrustBuildError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "wrap_exception",
]
