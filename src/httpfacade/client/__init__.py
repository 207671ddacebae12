"""
Asynchronous HTTP request façade.

Components:
    - HttpClient: submit, cancel and track requests keyed by integer id
    - ResultStore: outcome handed to the callback
    - RequestRegistry: at most one in-flight request per id
    - RequestExecutor: connect -> upload -> download state machine
    - ProgressReporter: throttled progress callbacks
    - ThreadCallbackDispatcher / LoopCallbackDispatcher: callback delivery
"""

from httpfacade.client.cancellation import CancellationToken, RequestHandle
from httpfacade.client.dispatch import LoopCallbackDispatcher, ThreadCallbackDispatcher
from httpfacade.client.executor import RequestExecutor
from httpfacade.client.http_client import HttpClient
from httpfacade.client.io_util import create_stream, extract_string_from_stream
from httpfacade.client.models import (
    CONTENT_LENGTH_KEYS,
    HTTP_CLIENT_CLOSED,
    HTTP_INTERNAL_CLIENT_ERROR,
    ExecutionOutcome,
    Request,
    RequestSnapshot,
    ResultStore,
    parse_content_length,
)
from httpfacade.client.progress import ProgressReporter
from httpfacade.client.registry import RegistryEntry, RequestRegistry
from httpfacade.client.transport import AiohttpConnection, AiohttpTransport
from httpfacade.client.worker import WorkerLoop

__all__ = [
    # Facade
    "HttpClient",
    "HTTP_CLIENT_CLOSED",
    "HTTP_INTERNAL_CLIENT_ERROR",
    # Models
    "Request",
    "RequestSnapshot",
    "ResultStore",
    "ExecutionOutcome",
    "CONTENT_LENGTH_KEYS",
    "parse_content_length",
    # Execution
    "RequestExecutor",
    "RequestRegistry",
    "RegistryEntry",
    "RequestHandle",
    "CancellationToken",
    "ProgressReporter",
    "WorkerLoop",
    "AiohttpTransport",
    "AiohttpConnection",
    # Callback delivery
    "ThreadCallbackDispatcher",
    "LoopCallbackDispatcher",
    # Stream helpers
    "create_stream",
    "extract_string_from_stream",
]
