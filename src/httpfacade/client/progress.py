"""
Throttled progress reporting.

Upload progress is reported once per chunk written. Download progress is
reported each time the running byte count crosses a multiple of the buffer
size, so a transfer of N bytes yields at most N // buffer_size reports no
matter how the transport splits its reads.
"""

import logging
from typing import Any

from httpfacade.types import CallbackDispatcher

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Forwards progress tuples for one request to the callback thread.

    Tuples are non-decreasing in every component; a report that would move
    any counter backwards is dropped.
    """

    def __init__(
        self,
        request_id: int,
        callback: Any | None,
        client_param: Any,
        dispatcher: CallbackDispatcher,
        buffer_size: int,
    ):
        self.request_id = request_id
        self._callback = callback
        self._client_param = client_param
        self._dispatcher = dispatcher
        self._buffer_size = buffer_size
        self._last = (0, 0, 0)
        self._last_boundary = 0

    def report_upload(self, bytes_sent: int) -> bool:
        return self._emit(bytes_sent, 0, 0)

    def report_download(self, bytes_sent: int, bytes_read: int, bytes_total_to_read: int) -> bool:
        boundary = bytes_read // self._buffer_size
        if boundary <= self._last_boundary:
            return False
        self._last_boundary = boundary
        return self._emit(bytes_sent, bytes_read, bytes_total_to_read)

    def _emit(self, bytes_sent: int, bytes_read: int, bytes_total_to_read: int) -> bool:
        current = (bytes_sent, bytes_read, bytes_total_to_read)
        if any(new < old for new, old in zip(current, self._last)):
            logger.debug(
                "Dropping non-monotonic progress report",
                extra={
                    "request_id": self.request_id,
                    "bytes_sent": bytes_sent,
                    "bytes_read": bytes_read,
                    "bytes_total_to_read": bytes_total_to_read,
                },
            )
            return False

        self._last = current
        if self._callback is None:
            return False

        self._dispatcher.dispatch(
            self._callback.on_connection_progress,
            self.request_id,
            bytes_sent,
            bytes_read,
            bytes_total_to_read,
            self._client_param,
        )
        return True
