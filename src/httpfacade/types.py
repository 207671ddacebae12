"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared across the library to ensure consistency and type safety.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed when the caller
                   submits the request again (timeouts, refused connections)
        PERMANENT: Failures that won't succeed on resubmission
                   (invalid method, malformed URL, unusable certificate)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class HttpClientCallback(Protocol):
    """
    Receiver of request outcomes.

    Every method is invoked on the client's callback thread. For a given
    request, all ``on_connection_progress`` calls precede the single
    terminal call (``on_content_received`` or ``on_connection_canceled``).
    """

    def on_content_received(self, request_id: int, result: Any, client_param: Any) -> None:
        """
        Called once when the request ran to completion without being canceled.

        Args:
            request_id: ID passed to ``HttpClient.do_request``
            result: ResultStore with status code, response headers and the
                sink the response body (if any) was written to
            client_param: Value passed to ``do_request``, untouched
        """
        ...

    def on_connection_canceled(self, request_id: int, result: Any, client_param: Any) -> None:
        """
        Called once when the worker observed a cancellation request.

        ``result.status_code`` is always ``HTTP_CLIENT_CLOSED`` (499).
        """
        ...

    def on_connection_progress(
        self,
        request_id: int,
        bytes_sent: int,
        bytes_read: int,
        bytes_total_to_read: int,
        client_param: Any,
    ) -> None:
        """
        Called zero or more times before the terminal callback.

        Args:
            request_id: ID passed to ``HttpClient.do_request``
            bytes_sent: Request body bytes written so far (0 without upload)
            bytes_read: Response body bytes read so far
            bytes_total_to_read: Declared Content-Length, 0 if unknown
            client_param: Value passed to ``do_request``, untouched
        """
        ...


class CallbackDispatcher(Protocol):
    """
    Protocol for delivering callback invocations on a designated thread.

    Implementations must run submitted calls one at a time, in submission
    order.
    """

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule ``fn(*args)`` on the callback thread without blocking."""
        ...

    def close(self) -> None:
        """Release the delivery thread, if the dispatcher owns one."""
        ...


__all__ = [
    "ErrorCategory",
    "HttpClientCallback",
    "CallbackDispatcher",
]
