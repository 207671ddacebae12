"""
Background event loop that runs request tasks.

The loop lives in a dedicated daemon thread so that ``HttpClient`` can be
used from synchronous code: ``submit`` hands a coroutine over from any
thread and returns a concurrent.futures.Future.
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_START_TIMEOUT_SECONDS = 5.0


class WorkerLoop:
    """
    Asyncio event loop in a background thread.

    Started lazily by the first ``submit`` and stopped by ``stop``. Tasks
    still running when the loop stops are cancelled.

    Example:
        >>> worker = WorkerLoop()
        >>> future = worker.submit(some_coroutine())
        >>> future.result(timeout=10)
        >>> worker.stop()
    """

    def __init__(self, name: str = "httpfacade-worker"):
        self.name = name
        self._thread: threading.Thread | None = None
        self._thread_loop: asyncio.AbstractEventLoop | None = None
        self._thread_ready = threading.Event()
        self._state_lock = threading.Lock()
        self._stopped = False

    def _run_loop_thread(self) -> None:
        """Entry point for the worker thread."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._thread_loop = loop
        self._thread_ready.set()

        try:
            loop.run_forever()
        except Exception as e:
            logger.error(f"Worker loop error: {e}", exc_info=True)
        finally:
            try:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                    logger.debug(f"Cancelled {len(pending)} unfinished request tasks")
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.run_until_complete(loop.shutdown_default_executor())
            finally:
                loop.close()

    def start(self) -> None:
        """Start the loop thread; no-op if it is already running."""
        with self._state_lock:
            if self._stopped:
                raise RuntimeError("Worker loop has been stopped")

            if self._thread is None or not self._thread.is_alive():
                self._thread_ready.clear()
                self._thread = threading.Thread(
                    target=self._run_loop_thread,
                    name=self.name,
                    daemon=True,
                )
                self._thread.start()

            if not self._thread_ready.wait(timeout=_START_TIMEOUT_SECONDS):
                raise RuntimeError("Worker loop thread failed to start")

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """Schedule ``coro`` on the loop from any thread."""
        self.start()
        return asyncio.run_coroutine_threadsafe(coro, self._thread_loop)

    def stop(self, timeout: float = _START_TIMEOUT_SECONDS) -> None:
        """Stop the loop and wait for the thread to exit. Further submits fail."""
        with self._state_lock:
            self._stopped = True
            thread, loop = self._thread, self._thread_loop

        if thread is None or loop is None:
            return

        try:
            loop.call_soon_threadsafe(loop.stop)
        except RuntimeError:
            # Loop already closed
            pass

        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Worker loop thread did not stop cleanly")
        else:
            logger.debug("Worker loop stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._thread_loop
