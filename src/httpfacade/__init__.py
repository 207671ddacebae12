"""
httpfacade: asynchronous HTTP requests keyed by integer id.

Requests run on a background event loop; progress and the final outcome
are reported through a callback object on a designated thread.

Modules:
    client    - HttpClient facade, request execution and callback delivery
    security  - URL validation and custom certificate trust
    errors    - Error classification and exception hierarchy
    logging   - Structured JSON/console logging with request context
    config    - YAML and environment configuration
"""

from httpfacade.client import (
    HTTP_CLIENT_CLOSED,
    HTTP_INTERNAL_CLIENT_ERROR,
    HttpClient,
    ResultStore,
)
from httpfacade.config import ClientConfig, load_config
from httpfacade.errors import MalformedURLError
from httpfacade.types import CallbackDispatcher, ErrorCategory, HttpClientCallback

__version__ = "0.1.0"

__all__ = [
    "HttpClient",
    "HttpClientCallback",
    "CallbackDispatcher",
    "ResultStore",
    "ClientConfig",
    "load_config",
    "MalformedURLError",
    "ErrorCategory",
    "HTTP_CLIENT_CLOSED",
    "HTTP_INTERNAL_CLIENT_ERROR",
]
