"""
Request execution state machine.

A run moves through open -> send (with optional streamed upload) ->
evaluate -> download. The cancellation token is checked before sending,
between upload chunks, after the response head and between download
chunks. Whatever happens, the run ends with an ExecutionOutcome and the
connection closed; nothing is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO

from httpfacade.client.cancellation import CancellationToken
from httpfacade.client.io_util import copy_stream, create_stream
from httpfacade.client.models import (
    HTTP_CLIENT_CLOSED,
    HTTP_INTERNAL_CLIENT_ERROR,
    ExecutionOutcome,
    Request,
    RequestSnapshot,
    ResultStore,
    parse_content_length,
)
from httpfacade.client.progress import ProgressReporter
from httpfacade.client.transport import AiohttpTransport, Connection, Transport
from httpfacade.errors import (
    ConnectionOpenError,
    ProtocolViolationError,
    TransferError,
    classify_exception,
    classify_http_status,
    wrap_exception,
)
from httpfacade.logging import LogContext, log_exception, log_phase, log_with_context
from httpfacade.security import sanitize_url

logger = logging.getLogger(__name__)

OPEN_FAILURE_MESSAGE = "Could not open connection."
INTERNAL_ERROR_MESSAGE = "Internal client error."


@dataclass
class TransferState:
    """Counters of one run."""

    bytes_sent: int = 0
    bytes_read: int = 0
    bytes_total_to_read: int = 0
    canceled: bool = False


class RequestExecutor:
    """Runs requests against a Transport.

    Stateless between runs; one executor serves every request of a client.
    """

    def __init__(self, transport: Transport | None = None):
        self.transport = transport or AiohttpTransport()

    async def execute(
        self,
        request: Request,
        snapshot: RequestSnapshot,
        token: CancellationToken,
        reporter: ProgressReporter,
    ) -> ExecutionOutcome:
        result = ResultStore(response_body=request.download_sink)
        state = TransferState()

        with LogContext(request_id=request.request_id):
            log_with_context(
                logger,
                logging.DEBUG,
                "Executing request",
                http_method=request.method,
                http_url=sanitize_url(request.url),
                buffer_size=snapshot.buffer_size,
            )

            try:
                with log_phase(logger, "open"):
                    connection = await self.transport.open(request.url, snapshot)
            except ConnectionOpenError as e:
                log_exception(
                    logger,
                    e,
                    "Could not open connection",
                    level=logging.WARNING,
                    include_traceback=False,
                    http_url=sanitize_url(request.url),
                )
                await self._fail(result, OPEN_FAILURE_MESSAGE, snapshot.buffer_size)
                return ExecutionOutcome(result=result, canceled=False)

            try:
                connection.configure(request.method, request.headers)
                await self._exchange(connection, request, snapshot, token, reporter, result, state)

            except ProtocolViolationError as e:
                log_exception(
                    logger, e, "Request rejected by transport", level=logging.WARNING,
                    include_traceback=False, http_method=request.method,
                )
                await self._fail(result, f"{e.message}.", snapshot.buffer_size)

            except ConnectionOpenError as e:
                log_exception(
                    logger,
                    e,
                    "Could not open connection",
                    level=logging.WARNING,
                    include_traceback=False,
                    http_url=sanitize_url(request.url),
                )
                if token.is_cancelled:
                    self._mark_canceled(result, state)
                else:
                    await self._fail(result, OPEN_FAILURE_MESSAGE, snapshot.buffer_size)

            except TransferError as e:
                log_exception(
                    logger,
                    e,
                    "Transfer failed",
                    level=logging.WARNING,
                    include_traceback=False,
                    status_code=result.status_code,
                    bytes_sent=state.bytes_sent,
                    bytes_read=state.bytes_read,
                )
                if state.canceled or token.is_cancelled:
                    self._mark_canceled(result, state)
                else:
                    await self._drain_error_stream(connection, result, snapshot.buffer_size)

            except Exception as e:
                log_exception(
                    logger,
                    e,
                    "Unexpected error while executing request",
                    error_category=classify_exception(e).value,
                )
                state.canceled = False
                result.headers = None
                await self._fail(result, INTERNAL_ERROR_MESSAGE, snapshot.buffer_size)

            finally:
                await connection.close()

            log_with_context(
                logger,
                logging.DEBUG,
                "Request finished",
                status_code=result.status_code,
                bytes_sent=state.bytes_sent,
                bytes_read=state.bytes_read,
                bytes_total_to_read=state.bytes_total_to_read,
            )

        return ExecutionOutcome(result=result, canceled=state.canceled)

    async def _exchange(
        self,
        connection: Connection,
        request: Request,
        snapshot: RequestSnapshot,
        token: CancellationToken,
        reporter: ProgressReporter,
        result: ResultStore,
        state: TransferState,
    ) -> None:
        if token.is_cancelled:
            self._mark_canceled(result, state)
            return

        body = None
        if request.upload_source is not None:
            body = self._upload_chunks(
                request.upload_source, snapshot.buffer_size, token, reporter, state
            )

        with log_phase(logger, "send"):
            await connection.send(body)

        if state.canceled or token.is_cancelled:
            self._mark_canceled(result, state)
            return

        result.status_code = connection.status
        result.headers = connection.headers
        state.bytes_total_to_read = parse_content_length(result.headers)

        log_with_context(
            logger,
            logging.DEBUG,
            "Response received",
            status_code=result.status_code,
            content_length=state.bytes_total_to_read,
            error_category=classify_http_status(result.status_code).value,
        )

        if request.download_sink is not None:
            with log_phase(logger, "download"):
                await self._download(connection, request.download_sink, snapshot, token, reporter, state)
            if state.canceled:
                self._mark_canceled(result, state)

    async def _upload_chunks(
        self,
        source: BinaryIO,
        buffer_size: int,
        token: CancellationToken,
        reporter: ProgressReporter,
        state: TransferState,
    ) -> AsyncIterator[bytes]:
        """Yield ``buffer_size`` chunks of ``source``, reporting after each one is written."""
        while True:
            if token.is_cancelled:
                state.canceled = True
                return
            try:
                chunk = await asyncio.to_thread(source.read, buffer_size)
            except OSError as e:
                raise wrap_exception(e, context={"stage": "upload_source"}) from e
            if not chunk:
                return
            yield chunk
            state.bytes_sent += len(chunk)
            reporter.report_upload(state.bytes_sent)

    async def _download(
        self,
        connection: Connection,
        sink: BinaryIO,
        snapshot: RequestSnapshot,
        token: CancellationToken,
        reporter: ProgressReporter,
        state: TransferState,
    ) -> None:
        while True:
            if token.is_cancelled:
                state.canceled = True
                return
            chunk = await connection.read(snapshot.buffer_size)
            if not chunk:
                # A cancel that landed during the final read still wins
                if token.is_cancelled:
                    state.canceled = True
                return
            try:
                await asyncio.to_thread(sink.write, chunk)
            except OSError as e:
                raise wrap_exception(e, context={"stage": "download_sink"}) from e
            state.bytes_read += len(chunk)
            reporter.report_download(state.bytes_sent, state.bytes_read, state.bytes_total_to_read)

    async def _drain_error_stream(
        self, connection: Connection, result: ResultStore, buffer_size: int
    ) -> None:
        """Copy whatever is left of an error response body into the sink."""
        sink = result.response_body
        if sink is None:
            return
        drained = 0
        try:
            while True:
                chunk = await connection.read_error(buffer_size)
                if not chunk:
                    break
                await asyncio.to_thread(sink.write, chunk)
                drained += len(chunk)
        except (TransferError, OSError) as e:
            log_exception(
                logger, e, "Could not drain error stream", level=logging.DEBUG,
                include_traceback=False,
            )
        if drained:
            logger.debug("Drained error stream", extra={"bytes_read": drained})

    @staticmethod
    def _mark_canceled(result: ResultStore, state: TransferState) -> None:
        state.canceled = True
        result.status_code = HTTP_CLIENT_CLOSED
        result.headers = None

    @staticmethod
    async def _fail(result: ResultStore, message: str, buffer_size: int) -> None:
        """Set the internal-error status and write ``message`` into the sink."""
        result.status_code = HTTP_INTERNAL_CLIENT_ERROR
        sink = result.response_body
        if sink is None:
            return
        try:
            await asyncio.to_thread(copy_stream, create_stream(message), sink, buffer_size)
        except OSError as e:
            log_exception(
                logger, e, "Could not write error message to response sink",
                level=logging.WARNING, include_traceback=False,
            )
