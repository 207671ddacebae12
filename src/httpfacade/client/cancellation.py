"""Cooperative cancellation primitives shared by the registry and workers."""

import concurrent.futures
import threading


class CancellationToken:
    """
    Flag a worker polls at its suspension points.

    Setting it never interrupts I/O already in progress; the worker notices
    at its next check, at most one buffer-sized chunk later.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class RequestHandle:
    """
    Registry-side handle of one scheduled request.

    Can signal cancellation and tell whether the worker finished. The
    future is attached after scheduling; until then the request counts as
    running.
    """

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token or CancellationToken()
        self._future: concurrent.futures.Future | None = None

    def attach(self, future: concurrent.futures.Future) -> None:
        self._future = future

    @property
    def future(self) -> concurrent.futures.Future | None:
        return self._future

    def cancel(self) -> None:
        self.token.cancel()

    def done(self) -> bool:
        return self._future is not None and self._future.done()
