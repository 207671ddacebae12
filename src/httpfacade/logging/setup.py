"""Root logger configuration for the CLI and embedding applications."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from httpfacade.logging.formatters import ConsoleFormatter, JSONFormatter

Level = int | str

# Third-party loggers held at WARNING; aiohttp logs every connection at DEBUG
QUIET_LOGGERS = ("aiohttp", "aiohttp.access", "aiohttp.client", "asyncio")

PLAIN_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def _to_level(level: Level) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


def _file_handler(
    log_file: Path,
    level: int,
    json_format: bool,
    when: str,
    interval: int,
    backup_count: int,
) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        log_file, when=when, interval=interval, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FILE_FORMAT))
    return handler


def setup_logging(
    name: str = "httpfacade",
    log_file: Path | None = None,
    json_format: bool = False,
    console_level: Level = logging.INFO,
    file_level: Level = logging.DEBUG,
    rotation_when: str = "midnight",
    rotation_interval: int = 1,
    backup_count: int = 7,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Replace the root logger's handlers with a stderr handler and, when
    ``log_file`` is given, a time-rotated file handler.

    Console output goes to stderr; the CLI may be writing a response body
    to stdout.

    Args:
        name: Logger returned to the caller
        log_file: Log file path, parent directories are created
        json_format: JSON lines instead of text, for both handlers
        console_level: Level of the stderr handler
        file_level: Level of the file handler
        rotation_when: ``when`` of TimedRotatingFileHandler
        rotation_interval: ``interval`` of TimedRotatingFileHandler
        backup_count: Rotated files kept
        suppress_noisy: Hold aiohttp and asyncio loggers at WARNING
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_to_level(console_level))
    console.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    root.addHandler(console)

    if log_file is not None:
        root.addHandler(
            _file_handler(
                Path(log_file),
                _to_level(file_level),
                json_format,
                rotation_when,
                rotation_interval,
                backup_count,
            )
        )

    if suppress_noisy:
        for quiet in QUIET_LOGGERS:
            logging.getLogger(quiet).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging configured",
        extra={"operation": "setup_logging", "config_path": str(log_file) if log_file else None},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
