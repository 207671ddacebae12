"""
HTTP transport used by the request executor.

A Transport opens one Connection per request. The Connection hides the
HTTP library: after ``send`` the status code and headers are available and
the response body can be read in chunks.

Failures are reported as httpfacade errors:
- ConnectionOpenError: the target could not be reached (DNS, refused, TLS
  handshake rejected)
- TransferError: I/O failed or timed out after the connection attempt started
- ProtocolViolationError: the method or a header cannot be sent at all
"""

import asyncio
import logging
import re
from typing import AsyncIterator, Mapping, Protocol

import aiohttp

from httpfacade.client.models import RequestSnapshot
from httpfacade.errors import (
    ConnectionOpenError,
    HttpFacadeError,
    ProtocolViolationError,
    TransferError,
)
from httpfacade.security import is_secure_url, sanitize_url

logger = logging.getLogger(__name__)

# RFC 9110 token: method names and header field names
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

# Characters that would split or terminate a header line
_FORBIDDEN_HEADER_VALUE_CHARS = ("\r", "\n", "\x00")


def validate_method(method: str) -> None:
    """Raise ProtocolViolationError unless ``method`` is an HTTP token."""
    if not isinstance(method, str) or not _TOKEN_RE.match(method):
        raise ProtocolViolationError.for_method(str(method))


def validate_headers(headers: Mapping[str, str] | None) -> None:
    """Raise ProtocolViolationError for a header that cannot go on the wire."""
    if not headers:
        return
    for name, value in headers.items():
        if not isinstance(name, str) or not _TOKEN_RE.match(name):
            raise ProtocolViolationError(f"Invalid header: '{name}'")
        if any(c in str(value) for c in _FORBIDDEN_HEADER_VALUE_CHARS):
            raise ProtocolViolationError(f"Invalid header value for '{name}'")


def header_map(headers: Mapping[str, str]) -> dict[str, list[str]]:
    """Group a multi-valued header mapping into name -> values, keeping arrival order."""
    result: dict[str, list[str]] = {}
    for name, value in headers.items():
        result.setdefault(str(name), []).append(value)
    return result


class Connection(Protocol):
    """One HTTP exchange."""

    status: int
    headers: dict[str, list[str]] | None

    def configure(self, method: str, headers: Mapping[str, str] | None) -> None: ...

    async def send(self, body: AsyncIterator[bytes] | None) -> None: ...

    async def read(self, size: int) -> bytes: ...

    async def read_error(self, size: int) -> bytes: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    async def open(self, url: str, snapshot: RequestSnapshot) -> Connection: ...


class AiohttpConnection:
    """
    Connection backed by a private aiohttp session.

    Each connection owns its session and connector so that the TLS context
    and timeouts captured in the request snapshot apply to this request
    only. Keep-alive is off and proxies or credentials from the
    environment are never consulted.
    """

    def __init__(self, url: str, snapshot: RequestSnapshot):
        self.url = url
        self.snapshot = snapshot
        self.method = "GET"
        self.request_headers: dict[str, str] = {}
        self.status = 0
        self.headers: dict[str, list[str]] | None = None
        self._session: aiohttp.ClientSession | None = None
        self._response: aiohttp.ClientResponse | None = None

    def open(self) -> None:
        ssl_param = True
        if is_secure_url(self.url) and self.snapshot.ssl_context is not None:
            ssl_param = self.snapshot.ssl_context

        connector = aiohttp.TCPConnector(
            limit=1,
            ssl=ssl_param,
            force_close=True,
        )

        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.snapshot.connect_timeout,
            sock_read=self.snapshot.read_timeout,
        )

        # Body bytes reach the sink exactly as sent so Content-Length and
        # bytes_read count the same thing.
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            trust_env=False,
            auto_decompress=False,
            skip_auto_headers=("Accept-Encoding",),
            raise_for_status=False,
        )

    def configure(self, method: str, headers: Mapping[str, str] | None) -> None:
        validate_method(method)
        validate_headers(headers)
        self.method = method
        self.request_headers = {name: str(value) for name, value in (headers or {}).items()}

    async def send(self, body: AsyncIterator[bytes] | None) -> None:
        """Send the request (streaming ``body`` if given) and read the response head."""
        if self._session is None:
            raise ConnectionOpenError("Connection was not opened")

        try:
            self._response = await self._session.request(
                self.method,
                self.url,
                headers=self.request_headers,
                data=body,
                allow_redirects=True,
            )
        except HttpFacadeError:
            raise
        except aiohttp.InvalidURL as e:
            raise ConnectionOpenError(
                f"Invalid URL: {sanitize_url(self.url)}", cause=e
            ) from e
        except aiohttp.ClientConnectorError as e:
            raise ConnectionOpenError(
                f"Could not connect to {sanitize_url(self.url)}", cause=e
            ) from e
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            raise TransferError(
                f"Request failed: {type(e).__name__}",
                cause=e,
                context={"error_type": type(e).__name__},
            ) from e

        self.status = self._response.status
        self.headers = header_map(self._response.headers)

    async def read(self, size: int) -> bytes:
        """Up to ``size`` bytes of the response body; b"" at end of body."""
        if self._response is None:
            return b""
        try:
            return await self._response.content.read(size)
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            raise TransferError(
                f"Reading response failed: {type(e).__name__}",
                cause=e,
                context={"error_type": type(e).__name__},
            ) from e

    async def read_error(self, size: int) -> bytes:
        """Like read, for the unread body of an error response (status >= 400)."""
        if self._response is None or self.status < 400:
            return b""
        return await self.read(size)

    async def close(self) -> None:
        if self._response is not None:
            self._response.close()
            self._response = None
        if self._session is not None:
            try:
                await self._session.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.debug(f"Error closing session: {e}")
            self._session = None
            # Let the connector finish closing its transport
            await asyncio.sleep(0)


class AiohttpTransport:
    """Transport creating one AiohttpConnection per request."""

    async def open(self, url: str, snapshot: RequestSnapshot) -> AiohttpConnection:
        connection = AiohttpConnection(url, snapshot)
        try:
            connection.open()
        except (ValueError, TypeError, OSError, aiohttp.ClientError) as e:
            raise ConnectionOpenError(
                f"Could not create connection for {sanitize_url(url)}", cause=e
            ) from e
        return connection


__all__ = [
    "Connection",
    "Transport",
    "AiohttpConnection",
    "AiohttpTransport",
    "validate_method",
    "validate_headers",
    "header_map",
]
