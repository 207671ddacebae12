"""Helpers for emitting structured log records."""

import logging
from typing import Any

# LogRecord attributes; passing one of these in ``extra`` makes logging raise
_RESERVED_LOG_KEYS = frozenset(
    {
        "args", "asctime", "created", "exc_info", "exc_text", "filename",
        "funcName", "levelname", "levelno", "lineno", "message", "module",
        "msecs", "msg", "name", "pathname", "process", "processName",
        "relativeCreated", "stack_info", "thread", "threadName",
    }
)

_MAX_ERROR_MESSAGE_LENGTH = 500

# Status the client reports for its own failures (see httpfacade.client.models)
_INTERNAL_CLIENT_ERROR = 599


def _extra(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log ``msg`` with keyword arguments attached as structured fields.

    ``exc_info`` is forwarded to ``logger.log``; keys clashing with LogRecord
    attributes are dropped.

    Example:
        log_with_context(
            logger, logging.DEBUG, "Response received",
            request_id=7,
            status_code=200,
        )
    """
    exc_info = kwargs.pop("exc_info", None)
    logger.log(level, msg, exc_info=exc_info, extra=_extra(kwargs))


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log an exception with its message and category as structured fields.

    ``error_category`` is taken from ``exc.category`` (set on every
    HttpFacadeError) unless the caller passes one. ``error_message`` is
    ``str(exc)`` cut to 500 characters.

    Example:
        try:
            await connection.send(body)
        except TransferError as e:
            log_exception(logger, e, "Transfer failed", level=logging.WARNING)
    """
    if kwargs.get("error_category") is None and hasattr(exc, "category"):
        category = exc.category
        kwargs["error_category"] = getattr(category, "value", str(category))

    error_message = str(exc)
    if len(error_message) > _MAX_ERROR_MESSAGE_LENGTH:
        error_message = error_message[:_MAX_ERROR_MESSAGE_LENGTH] + "..."
    kwargs["error_message"] = error_message

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=_extra(kwargs))
    else:
        logger.log(level, msg, extra=_extra(kwargs))


def log_request_outcome(
    logger: logging.Logger,
    request_id: int,
    status_code: int,
    canceled: bool,
    **kwargs: Any,
) -> None:
    """
    Log the terminal state of a request, one line per request.

    Canceled requests and server responses log at INFO. Outcomes produced by
    the client itself (599, or 0 when no status line was read) log at
    WARNING.
    """
    if canceled:
        level, msg = logging.INFO, "Request canceled"
    elif status_code in (0, _INTERNAL_CLIENT_ERROR):
        level, msg = logging.WARNING, "Request failed"
    else:
        level, msg = logging.INFO, "Request complete"

    log_with_context(
        logger,
        level,
        msg,
        request_id=request_id,
        status_code=status_code,
        operation="cancel" if canceled else "complete",
        **kwargs,
    )
