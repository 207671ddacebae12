"""Scoped log context and phase timing."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from httpfacade.logging.context import Binding, bind_log_context, unbind_log_context
from httpfacade.logging.utilities import log_with_context


class LogContext:
    """
    Bind log context fields for the length of a ``with`` block.

    Fields left as None keep their current value. On exit every field
    returns to what it was before the block, even when the block raised.

    Usage:
        with LogContext(request_id=7):
            await executor.execute(...)
    """

    def __init__(
        self,
        request_id: int | str | None = None,
        phase: str | None = None,
        worker_id: str | None = None,
    ):
        self._fields = dict(request_id=request_id, phase=phase, worker_id=worker_id)
        self._binding: Binding = []

    def __enter__(self) -> "LogContext":
        self._binding = bind_log_context(**self._fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        unbind_log_context(self._binding)
        self._binding = []
        return False


@contextmanager
def log_phase(
    logger: logging.Logger,
    phase: str,
    level: int | str = logging.DEBUG,
    **context: Any,
) -> Iterator[None]:
    """
    Run a block as request phase ``phase`` (open, send or download).

    Logs "Phase complete: <phase>" with ``duration_ms`` when the block ends,
    whether or not it raised.

    Example:
        with log_phase(logger, "download", request_id=7):
            await self._download(...)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    binding = bind_log_context(phase=phase)
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        log_with_context(logger, level, f"Phase complete: {phase}", duration_ms=elapsed_ms, **context)
        unbind_log_context(binding)
