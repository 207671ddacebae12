"""Log formatters: one JSON object per line, or colored text for a terminal."""

import json
import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from httpfacade.logging.context import get_log_context
from httpfacade.security.urls import sanitize_url

# Record extras copied into JSON output, with the type numeric ones are coerced to
_EXTRA_FIELDS: dict[str, Callable[[Any], Any] | None] = {
    "request_id": None,
    "duration_ms": float,
    "operation": None,
    "http_method": None,
    "http_url": None,
    "status_code": int,
    "content_length": int,
    "bytes_sent": int,
    "bytes_read": int,
    "bytes_total_to_read": int,
    "buffer_size": int,
    "error_category": None,
    "error_message": None,
    "error_type": None,
    "callback_error": None,
    "stage": None,
    "certificate_subject": None,
    "config_path": None,
}

_URL_FIELDS = frozenset({"http_url", "url"})

# Levels where the source line is worth the extra bytes
_LOCATED_LEVELS = frozenset({logging.DEBUG, logging.ERROR, logging.CRITICAL})


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    return str(obj)


def _coerce(field: str, value: Any) -> Any:
    convert = _EXTRA_FIELDS[field]
    if convert is not None:
        try:
            return convert(value)
        except (TypeError, ValueError):
            return None
    if field in _URL_FIELDS and isinstance(value, str):
        return sanitize_url(value)
    return value


class JSONFormatter(logging.Formatter):
    """
    Format records as single-line JSON.

    Ambient log context (request_id, phase, worker_id) is added
    when set; a field passed explicitly in ``extra`` takes precedence. URLs
    are redacted and numeric fields always serialize as numbers.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update((k, v) for k, v in get_log_context().items() if v)

        if record.levelno in _LOCATED_LEVELS:
            entry["file"] = f"{record.filename}:{record.lineno}"

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = _coerce(field, value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=_json_default, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Text formatter: ``time - LEVEL - logger - [req:N] [phase] message``.

    The level name is colored only when stderr is a terminal.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stderr.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self._use_colors else None
        return f"{color}{record.levelname}{self.RESET}" if color else record.levelname

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()
        request_id = getattr(record, "request_id", None) or context["request_id"]

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            self._level(record),
            record.name,
        ]
        tags = []
        if request_id not in (None, ""):
            tags.append(f"[req:{request_id}]")
        if context["phase"]:
            tags.append(f"[{context['phase']}]")

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        parts.append(" ".join(tags + [message]))
        return " - ".join(parts)
