"""
Callback delivery on a designated thread.

ThreadCallbackDispatcher owns a single daemon thread; LoopCallbackDispatcher
hands calls to an asyncio event loop the application already runs. Both
deliver in submission order. An exception raised by a callback is logged and
never reaches the worker that produced the call.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from httpfacade.logging import log_exception

logger = logging.getLogger(__name__)


def _callback_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


def _invoke(fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
    try:
        fn(*args)
    except Exception as e:
        log_exception(
            logger,
            e,
            "Callback raised an exception",
            callback_error=_callback_name(fn),
        )


class ThreadCallbackDispatcher:
    """Runs callbacks one at a time on a dedicated thread."""

    def __init__(self, thread_name: str = "httpfacade-callback"):
        self.thread_name = thread_name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name)

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            self._executor.submit(_invoke, fn, args)
        except RuntimeError:
            logger.warning(
                "Callback dropped, dispatcher is closed",
                extra={"callback_error": _callback_name(fn)},
            )

    def close(self, wait: bool = True) -> None:
        """Stop accepting calls; with ``wait`` run everything already queued first."""
        self._executor.shutdown(wait=wait)


class LoopCallbackDispatcher:
    """Schedules callbacks on an existing asyncio event loop.

    Use this when the application's designated thread is the one running
    ``loop``. The dispatcher does not own the loop and never closes it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(_invoke, fn, args)
        except RuntimeError:
            logger.warning(
                "Callback dropped, event loop is closed",
                extra={"callback_error": _callback_name(fn)},
            )

    def close(self) -> None:
        pass
