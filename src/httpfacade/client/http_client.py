"""
Asynchronous HTTP request façade.

HttpClient accepts requests keyed by an integer id, runs each one on a
background event loop and reports the outcome through a callback object on
the callback thread. At most one request per id is active: submitting a
new request under a running id cancels the old one.

Usage:
    client = HttpClient()
    client.do_request(7, callback, "https://example.com/data", "GET",
                      download_body=io.BytesIO())
    ...
    client.cancel_request(7)
    client.close()
"""

import asyncio
import logging
import threading
from concurrent.futures import wait
from pathlib import Path
from types import MappingProxyType
from typing import Any, BinaryIO, Mapping

from httpfacade.client.cancellation import RequestHandle
from httpfacade.client.dispatch import ThreadCallbackDispatcher
from httpfacade.client.executor import RequestExecutor
from httpfacade.client.models import (
    HTTP_CLIENT_CLOSED,
    HTTP_INTERNAL_CLIENT_ERROR,
    ExecutionOutcome,
    Request,
    RequestSnapshot,
    ResultStore,
)
from httpfacade.client.progress import ProgressReporter
from httpfacade.client.registry import RegistryEntry, RequestRegistry
from httpfacade.client.transport import Transport
from httpfacade.client.worker import WorkerLoop
from httpfacade.config import ClientConfig, get_config
from httpfacade.logging import LogContext, log_request_outcome, log_with_context
from httpfacade.security import TrustConfig, sanitize_url, validate_request_url
from httpfacade.security.trust import CertificateSource
from httpfacade.types import CallbackDispatcher, HttpClientCallback

logger = logging.getLogger(__name__)

_CLOSE_TIMEOUT_SECONDS = 5.0


class HttpClient:
    """
    Client running HTTP requests in the background.

    Settings (timeouts, buffer size, trust certificate) may be changed at
    any time; each request uses the values current when it was submitted.

    Args:
        config: Initial settings; defaults to ``ClientConfig()``
        dispatcher: Where callbacks run. Defaults to a dedicated callback
            thread owned (and closed) by the client.
        transport: HTTP transport; defaults to aiohttp
    """

    HTTP_CLIENT_CLOSED = HTTP_CLIENT_CLOSED
    HTTP_INTERNAL_CLIENT_ERROR = HTTP_INTERNAL_CLIENT_ERROR

    def __init__(
        self,
        config: ClientConfig | None = None,
        dispatcher: CallbackDispatcher | None = None,
        transport: Transport | None = None,
    ):
        config = config or ClientConfig()

        self._settings_lock = threading.Lock()
        self._connection_timeout_ms = config.connection_timeout_ms
        self._read_timeout_ms = config.read_timeout_ms
        self._buffer_size = config.buffer_size

        self._trust = TrustConfig()
        if config.trust_certificate_path:
            self._trust.set_custom_trust_certificate_file(config.trust_certificate_path)

        self._registry = RequestRegistry()
        self._owns_dispatcher = dispatcher is None
        self._dispatcher = dispatcher or ThreadCallbackDispatcher(config.callback_thread_name)
        self._executor = RequestExecutor(transport)
        self._worker = WorkerLoop()
        self._closed = False

    @classmethod
    def from_config(cls, config: ClientConfig | None = None, **kwargs: Any) -> "HttpClient":
        """Create a client from ``config`` or, if omitted, the loaded configuration."""
        return cls(config or get_config(), **kwargs)

    # =========================================================================
    # Requests
    # =========================================================================

    def do_request(
        self,
        request_id: int,
        callback: HttpClientCallback | None,
        url: str,
        method: str,
        headers: Mapping[str, str] | None = None,
        upload_body: BinaryIO | None = None,
        download_body: BinaryIO | None = None,
        client_param: Any = None,
    ) -> None:
        """
        Submit a request and return immediately.

        Any request still running under ``request_id`` is canceled first.
        Exactly one of ``callback.on_content_received`` or
        ``callback.on_connection_canceled`` is called later, preceded by zero
        or more ``on_connection_progress`` calls.

        Args:
            request_id: Caller-chosen id
            callback: Receiver of progress and the outcome; may be None
            url: Absolute http or https URL
            method: HTTP method, e.g. "GET"
            headers: Request headers
            upload_body: Binary stream sent as the request body
            download_body: Binary stream receiving the response body. The
                client writes to it but never closes it.
            client_param: Passed back untouched to every callback

        Raises:
            MalformedURLError: ``url`` is not a usable absolute http(s) URL
            RuntimeError: the client has been closed
        """
        validate_request_url(url)
        if self._closed:
            raise RuntimeError("HttpClient is closed")

        request = Request(
            request_id=request_id,
            url=url,
            method=method,
            headers=MappingProxyType(dict(headers)) if headers else None,
            upload_source=upload_body,
            download_sink=download_body,
            client_param=client_param,
        )
        snapshot = self._snapshot()

        handle = RequestHandle()
        previous = self._registry.register(request_id, RegistryEntry(handle=handle, callback=callback))

        log_with_context(
            logger,
            logging.DEBUG,
            "Request submitted",
            request_id=request_id,
            http_method=method,
            http_url=sanitize_url(url),
            operation="replace" if previous is not None else "submit",
        )

        coro = self._run_request(request, snapshot, handle, callback)
        try:
            future = self._worker.submit(coro)
        except RuntimeError:
            coro.close()
            self._registry.release(request_id, handle)
            raise
        handle.attach(future)

    def cancel_request(self, request_id: int) -> None:
        """Ask the request to stop at its next checkpoint. Unknown ids are ignored.

        The mapping is removed at once, so ``is_request_running`` and
        ``get_callback`` report nothing for this id afterwards even though
        the worker may still deliver ``on_connection_canceled``.
        """
        if self._registry.cancel(request_id):
            logger.debug("Cancellation requested", extra={"request_id": request_id})

    def is_request_running(self, request_id: int) -> bool:
        return self._registry.is_running(request_id)

    def get_callback(self, request_id: int) -> HttpClientCallback | None:
        return self._registry.lookup(request_id)

    async def _run_request(
        self,
        request: Request,
        snapshot: RequestSnapshot,
        handle: RequestHandle,
        callback: HttpClientCallback | None,
    ) -> ExecutionOutcome:
        reporter = ProgressReporter(
            request.request_id,
            callback,
            request.client_param,
            self._dispatcher,
            snapshot.buffer_size,
        )
        with LogContext(worker_id=self._worker.name):
            try:
                outcome = await self._executor.execute(request, snapshot, handle.token, reporter)
            except asyncio.CancelledError:
                # Worker loop shut down while the run was blocked in I/O
                outcome = ExecutionOutcome(
                    result=ResultStore(response_body=request.download_sink, status_code=HTTP_CLIENT_CLOSED),
                    canceled=True,
                )
                self._registry.release(request.request_id, handle)
                self._deliver(request, callback, outcome)
                raise
            self._registry.release(request.request_id, handle)
            self._deliver(request, callback, outcome)
        return outcome

    def _deliver(
        self,
        request: Request,
        callback: HttpClientCallback | None,
        outcome: ExecutionOutcome,
    ) -> None:
        log_request_outcome(
            logger,
            request.request_id,
            outcome.result.status_code,
            outcome.canceled,
            http_method=request.method,
            http_url=sanitize_url(request.url),
        )
        if callback is None:
            return

        if outcome.canceled:
            self._dispatcher.dispatch(
                callback.on_connection_canceled,
                request.request_id,
                outcome.result,
                request.client_param,
            )
        else:
            self._dispatcher.dispatch(
                callback.on_content_received,
                request.request_id,
                outcome.result,
                request.client_param,
            )

    # =========================================================================
    # Settings
    # =========================================================================

    def _snapshot(self) -> RequestSnapshot:
        with self._settings_lock:
            return RequestSnapshot(
                connection_timeout_ms=self._connection_timeout_ms,
                read_timeout_ms=self._read_timeout_ms,
                buffer_size=self._buffer_size,
                ssl_context=self._trust.snapshot(),
            )

    def set_connection_timeout_in_millis(self, timeout_ms: int) -> None:
        """Connect timeout for later requests; 0 disables it."""
        if timeout_ms < 0:
            raise ValueError(f"timeout must be >= 0, got {timeout_ms}")
        with self._settings_lock:
            self._connection_timeout_ms = timeout_ms

    def get_connection_timeout_in_millis(self) -> int:
        with self._settings_lock:
            return self._connection_timeout_ms

    def set_read_timeout_in_millis(self, timeout_ms: int) -> None:
        """Read timeout for later requests; 0 disables it."""
        if timeout_ms < 0:
            raise ValueError(f"timeout must be >= 0, got {timeout_ms}")
        with self._settings_lock:
            self._read_timeout_ms = timeout_ms

    def get_read_timeout_in_millis(self) -> int:
        with self._settings_lock:
            return self._read_timeout_ms

    def set_buffer_size(self, buffer_size: int) -> None:
        """Chunk size for later requests. Values <= 0 are ignored."""
        if buffer_size <= 0:
            logger.debug(f"Ignoring non-positive buffer size: {buffer_size}")
            return
        with self._settings_lock:
            self._buffer_size = buffer_size

    def get_buffer_size(self) -> int:
        with self._settings_lock:
            return self._buffer_size

    def set_custom_trust_certificate(self, certificate: CertificateSource) -> bool:
        """Trust only ``certificate`` for later HTTPS requests.

        On any failure the custom trust is cleared (the platform default
        applies again) and False is returned.
        """
        return self._trust.set_custom_trust_certificate(certificate)

    def set_custom_trust_certificate_file(self, path: str | Path) -> bool:
        return self._trust.set_custom_trust_certificate_file(path)

    def clear_trust_chain_keystore(self) -> None:
        """Return to platform default trust for later requests."""
        self._trust.clear_trust_chain_keystore()

    @property
    def has_custom_trust(self) -> bool:
        return self._trust.has_custom_trust

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self, timeout: float = _CLOSE_TIMEOUT_SECONDS) -> None:
        """
        Cancel every request, stop the worker loop and the callback thread.

        Every running request delivers ``on_connection_canceled`` before the
        callback thread stops. Requests still blocked in I/O after
        ``timeout`` are interrupted by the worker loop shutdown. Safe to call
        more than once.
        """
        if self._closed:
            return
        self._closed = True

        handles = self._registry.cancel_all()
        futures = [h.future for h in handles if h.future is not None]
        if futures:
            _, not_done = wait(futures, timeout=timeout)
            if not_done:
                logger.warning(f"{len(not_done)} requests still running at close")

        self._worker.stop(timeout=timeout)
        if self._owns_dispatcher:
            self._dispatcher.close()
        logger.debug("HttpClient closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["HttpClient", "HTTP_CLIENT_CLOSED", "HTTP_INTERNAL_CLIENT_ERROR"]
