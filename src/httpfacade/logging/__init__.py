"""
Structured logging module.

Provides JSON and console logging with request-scoped context propagation.
"""

from httpfacade.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from httpfacade.logging.context_managers import LogContext, log_phase
from httpfacade.logging.formatters import ConsoleFormatter, JSONFormatter
from httpfacade.logging.setup import get_logger, setup_logging
from httpfacade.logging.utilities import log_exception, log_request_outcome, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Context Managers
    "LogContext",
    "log_phase",
    # Utilities
    "log_with_context",
    "log_exception",
    "log_request_outcome",
]
