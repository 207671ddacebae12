"""
Exceptions raised inside the client and their classification.

None of these reach a caller of ``HttpClient.do_request`` except
MalformedURLError: the executor turns every other failure into a result
status. The category travels into logs as ``error_category``.
"""

import ssl

import aiohttp

from httpfacade.types import ErrorCategory


class HttpFacadeError(Exception):
    """
    Root of the client's exceptions.

    Attributes:
        message: Description without the cause
        cause: Wrapped lower-level exception, if any
        context: Fields added to the log line of this error
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, cause: Exception | None = None, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = dict(context or {})

    @property
    def is_transient(self) -> bool:
        return self.category is ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} | Caused by: {self.cause}"


class TransientError(HttpFacadeError):
    category = ErrorCategory.TRANSIENT


class PermanentError(HttpFacadeError):
    category = ErrorCategory.PERMANENT


class ConnectionOpenError(TransientError):
    """No connection to the target could be established."""


class TransferError(TransientError):
    """Reading or writing failed on an open connection, or on a caller stream."""


class ProtocolViolationError(PermanentError):
    """The transport refuses the request method or a header."""

    def __init__(
        self,
        message: str,
        method: str | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.method = method

    @classmethod
    def for_method(cls, method: str) -> "ProtocolViolationError":
        return cls(f"Invalid protocol: '{method}'", method=method, context={"http_method": method})


class MalformedURLError(PermanentError, ValueError):
    """URL string is not an absolute http(s) URL with a host."""

    def __init__(self, url: str, reason: str, cause: Exception | None = None):
        super().__init__(f"Malformed URL '{url}': {reason}", cause, {"url": url})
        self.url = url
        self.reason = reason


class TrustBuildError(PermanentError):
    """A stage of the custom trust pipeline (read, parse, install) failed."""

    def __init__(self, stage: str, message: str, cause: Exception | None = None):
        super().__init__(message, cause, {"stage": stage})
        self.stage = stage


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Category of a response status for log tagging.

    Success and redirects are UNKNOWN (not an error). 429 and 5xx, including
    the client's own 599, are TRANSIENT; other 4xx, including 499, are
    PERMANENT.
    """
    if status_code == 429 or status_code >= 500:
        return ErrorCategory.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT
    return ErrorCategory.UNKNOWN


# Checked in order; certificate failures subclass the connection errors
_PERMANENT_TYPES = (ssl.SSLCertVerificationError, aiohttp.ClientSSLError)
_TRANSIENT_TYPES = (
    ConnectionError,
    TimeoutError,
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
)


def classify_exception(exc: Exception) -> ErrorCategory:
    """Category of an arbitrary exception, by type first and then by message."""
    if isinstance(exc, HttpFacadeError):
        return exc.category
    if isinstance(exc, _PERMANENT_TYPES):
        return ErrorCategory.PERMANENT
    if isinstance(exc, _TRANSIENT_TYPES):
        return ErrorCategory.TRANSIENT

    text = str(exc).lower()
    if "certificate" in text:
        return ErrorCategory.PERMANENT
    if "timed out" in text or "connection" in text:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = TransferError,
    context: dict | None = None,
) -> HttpFacadeError:
    """
    Return ``exc`` as an HttpFacadeError.

    Client exceptions come back as they are, with ``context`` merged in.
    Anything else is wrapped in ``default_class`` with ``error_type`` set to
    the original class name.
    """
    if isinstance(exc, HttpFacadeError):
        exc.context.update(context or {})
        return exc

    fields = {**(context or {}), "error_type": type(exc).__name__}
    return default_class(str(exc) or type(exc).__name__, cause=exc, context=fields)
