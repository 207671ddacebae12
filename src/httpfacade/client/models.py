"""
Data models for request execution.

- Request: immutable description of one submission
- RequestSnapshot: client settings captured when the request was submitted
- ResultStore: outcome of a request as handed to the callback
- ExecutionOutcome: ResultStore plus whether cancellation was observed
"""

import ssl
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Mapping

# Status code for requests the client closed before completion
HTTP_CLIENT_CLOSED = 499

# Status code for failures inside the client before any server response
HTTP_INTERNAL_CLIENT_ERROR = 599

# Header keys checked, in order, for the declared body size
CONTENT_LENGTH_KEYS = ("Content-Length", "content-length", "CONTENT-LENGTH")


@dataclass(frozen=True)
class Request:
    """
    Immutable request description.

    Attributes:
        request_id: Caller-chosen id correlating callbacks and cancellation
        url: Validated absolute http(s) URL
        method: HTTP method, passed to the transport as given
        headers: Request header pairs (copied at submission)
        upload_source: Binary stream read for the request body, or None
        download_sink: Binary stream the response body is written to, or None
        client_param: Opaque value handed back to every callback
    """

    request_id: int
    url: str
    method: str
    headers: Mapping[str, str] | None = None
    upload_source: BinaryIO | None = None
    download_sink: BinaryIO | None = None
    client_param: Any = None


@dataclass(frozen=True)
class RequestSnapshot:
    """
    Client settings captured at submission time.

    Later changes to the client's timeouts, buffer size or trust
    certificate never affect a request holding an older snapshot.
    """

    connection_timeout_ms: int
    read_timeout_ms: int
    buffer_size: int
    ssl_context: ssl.SSLContext | None = None

    @property
    def connect_timeout(self) -> float | None:
        """Connect timeout in seconds, None for no timeout (0 ms)."""
        return self.connection_timeout_ms / 1000 if self.connection_timeout_ms > 0 else None

    @property
    def read_timeout(self) -> float | None:
        """Read timeout in seconds, None for no timeout (0 ms)."""
        return self.read_timeout_ms / 1000 if self.read_timeout_ms > 0 else None


@dataclass
class ResultStore:
    """
    Outcome of a request.

    Written only by the run that owns it; read-only once delivered.

    Attributes:
        response_body: The caller's download sink, same reference. The
            client never closes it.
        status_code: HTTP status, HTTP_CLIENT_CLOSED, HTTP_INTERNAL_CLIENT_ERROR,
            or 0 when a transfer failed before a status line was read
        headers: Response headers, each name mapped to its values in
            arrival order; None when canceled or never received
    """

    response_body: BinaryIO | None = None
    status_code: int = 0
    headers: dict[str, list[str]] | None = None


@dataclass
class ExecutionOutcome:
    """ResultStore plus whether the worker observed a cancellation request."""

    result: ResultStore = field(default_factory=ResultStore)
    canceled: bool = False


def parse_content_length(headers: Mapping[str, list[str]] | None) -> int:
    """
    Declared body size from a response header map.

    The first of ``CONTENT_LENGTH_KEYS`` present is used and its first value
    must be a plain non-negative decimal integer. Anything else yields 0.
    """
    if not headers:
        return 0

    values = None
    for key in CONTENT_LENGTH_KEYS:
        values = headers.get(key)
        if values is not None:
            break

    if not values:
        return 0

    value = values[0]
    if not isinstance(value, str) or not value.isascii() or not value.isdigit():
        return 0
    return int(value)


__all__ = [
    "HTTP_CLIENT_CLOSED",
    "HTTP_INTERNAL_CLIENT_ERROR",
    "CONTENT_LENGTH_KEYS",
    "Request",
    "RequestSnapshot",
    "ResultStore",
    "ExecutionOutcome",
    "parse_content_length",
]
