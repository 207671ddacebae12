"""
Shared fixtures for httpfacade tests.

Provides:
- InlineDispatcher: runs callbacks immediately and records them
- RecordingCallback: HttpClientCallback collecting every call
- FakeConnection / FakeTransport: in-memory transport for executor tests
- LocalServer: aiohttp web app served from a background event loop thread
- self_signed_cert: certificate and key for TLS tests
"""

import asyncio
import datetime
import ipaddress
import ssl
import threading
from dataclasses import dataclass
from typing import Any, Callable

import pytest
from aiohttp import web
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from httpfacade.client.transport import validate_headers, validate_method
from httpfacade.errors import TransferError
from httpfacade.logging import clear_log_context


@pytest.fixture(autouse=True)
def clear_context():
    clear_log_context()
    yield
    clear_log_context()


# =============================================================================
# Callback side
# =============================================================================


class InlineDispatcher:
    """Runs callbacks on the calling thread, in order."""

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []
        self.closed = False

    def dispatch(self, fn, *args):
        self.calls.append((fn.__name__, args))
        fn(*args)

    def close(self):
        self.closed = True


class RecordingCallback:
    """Collects callbacks; ``wait`` blocks until the terminal one arrives."""

    def __init__(self, on_progress: Callable[..., None] | None = None):
        self.events: list[str] = []
        self.progress: list[tuple[int, int, int]] = []
        self.received: list[tuple[int, Any, Any]] = []
        self.canceled: list[tuple[int, Any, Any]] = []
        self.thread_names: set[str] = set()
        self._on_progress = on_progress
        self._done = threading.Event()

    def on_connection_progress(self, request_id, bytes_sent, bytes_read, bytes_total_to_read, client_param):
        self.thread_names.add(threading.current_thread().name)
        self.events.append("progress")
        self.progress.append((bytes_sent, bytes_read, bytes_total_to_read))
        if self._on_progress is not None:
            self._on_progress(request_id, bytes_sent, bytes_read, bytes_total_to_read, client_param)

    def on_content_received(self, request_id, result, client_param):
        self.thread_names.add(threading.current_thread().name)
        self.events.append("received")
        self.received.append((request_id, result, client_param))
        self._done.set()

    def on_connection_canceled(self, request_id, result, client_param):
        self.thread_names.add(threading.current_thread().name)
        self.events.append("canceled")
        self.canceled.append((request_id, result, client_param))
        self._done.set()

    def wait(self, timeout: float = 10.0) -> bool:
        return self._done.wait(timeout)

    @property
    def terminal_count(self) -> int:
        return len(self.received) + len(self.canceled)


@pytest.fixture
def inline_dispatcher():
    return InlineDispatcher()


@pytest.fixture
def recording_callback():
    return RecordingCallback()


@pytest.fixture
def recording_callback_cls():
    return RecordingCallback


# =============================================================================
# In-memory transport
# =============================================================================


class FakeConnection:
    """
    Connection serving a canned response.

    Args:
        status: Response status
        headers: Response header map
        body: Response body bytes
        send_error: Raised from send() after the upload body is consumed
        fail_after: Raise TransferError once this many body bytes were read
        on_read: Called with the running byte count after every read
    """

    def __init__(
        self,
        status: int = 200,
        headers: dict[str, list[str]] | None = None,
        body: bytes = b"",
        send_error: Exception | None = None,
        fail_after: int | None = None,
        on_read: Callable[[int], None] | None = None,
        max_read: int | None = None,
    ):
        self._status = status
        self._headers = headers if headers is not None else {}
        self._body = body
        self._pos = 0
        self._send_error = send_error
        self._fail_after = fail_after
        self._on_read = on_read
        self._max_read = max_read

        self.status = 0
        self.headers: dict[str, list[str]] | None = None
        self.method: str | None = None
        self.request_headers = None
        self.uploaded = bytearray()
        self.upload_chunks: list[int] = []
        self.sent = False
        self.read_sizes: list[int] = []
        self.closed = False

    def configure(self, method, headers):
        validate_method(method)
        validate_headers(headers)
        self.method = method
        self.request_headers = headers

    async def send(self, body):
        self.sent = True
        if body is not None:
            async for chunk in body:
                self.uploaded.extend(chunk)
                self.upload_chunks.append(len(chunk))
        if self._send_error is not None:
            raise self._send_error
        self.status = self._status
        self.headers = self._headers

    async def read(self, size):
        if self._fail_after is not None and self._pos >= self._fail_after:
            raise TransferError("Connection reset by peer")
        self.read_sizes.append(size)
        if self._max_read is not None:
            size = min(size, self._max_read)
        chunk = self._body[self._pos : self._pos + size]
        self._pos += len(chunk)
        if self._on_read is not None:
            self._on_read(self._pos)
        return chunk

    async def read_error(self, size):
        if self.status < 400:
            return b""
        chunk = self._body[self._pos : self._pos + size]
        self._pos += len(chunk)
        return chunk

    async def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, connection: FakeConnection | None = None, open_error: Exception | None = None):
        self.connection = connection or FakeConnection()
        self.open_error = open_error
        self.opened: list[tuple[str, Any]] = []

    async def open(self, url, snapshot):
        self.opened.append((url, snapshot))
        if self.open_error is not None:
            raise self.open_error
        return self.connection


@pytest.fixture
def fake_connection_cls():
    return FakeConnection


@pytest.fixture
def fake_transport_cls():
    return FakeTransport


# =============================================================================
# Local HTTP(S) server
# =============================================================================


class LocalServer:
    """Serves an aiohttp app on 127.0.0.1 from its own event loop thread."""

    def __init__(self, app: web.Application, ssl_context: ssl.SSLContext | None = None):
        self.app = app
        self.ssl_context = ssl_context
        self.port: int | None = None
        self._runner: web.AppRunner | None = None
        self._thread_loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._thread_ready = threading.Event()

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl_context is not None else "http"
        return f"{scheme}://127.0.0.1:{self.port}"

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _start_async(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0, ssl_context=self.ssl_context)
        await site.start()
        self.port = site._server.sockets[0].getsockname()[1]

    def _run_server_thread(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._thread_loop = loop
        try:
            loop.run_until_complete(self._start_async())
            self._thread_ready.set()
            loop.run_forever()
            loop.run_until_complete(self._runner.cleanup())
        finally:
            loop.close()

    def start(self) -> "LocalServer":
        self._thread = threading.Thread(target=self._run_server_thread, name="test-http-server", daemon=True)
        self._thread.start()
        if not self._thread_ready.wait(timeout=5.0):
            raise RuntimeError("Test server failed to start")
        return self

    def stop(self) -> None:
        if self._thread_loop is not None:
            self._thread_loop.call_soon_threadsafe(self._thread_loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=10.0)


async def _bytes_handler(request: web.Request) -> web.Response:
    size = int(request.match_info["size"])
    return web.Response(body=b"x" * size, headers={"Content-Type": "application/octet-stream"})


async def _echo_handler(request: web.Request) -> web.Response:
    body = await request.read()
    return web.Response(
        body=body,
        headers={
            "X-Method": request.method,
            "X-Received-Length": str(len(body)),
            "X-Test-Header": request.headers.get("X-Test", ""),
        },
    )


async def _slow_handler(request: web.Request) -> web.StreamResponse:
    total = int(request.match_info["size"])
    response = web.StreamResponse()
    response.content_length = total
    await response.prepare(request)
    sent = 0
    while sent < total:
        await response.write(b"y" * 10)
        sent += 10
        await asyncio.sleep(0.05)
    await response.write_eof()
    return response


async def _status_handler(request: web.Request) -> web.Response:
    code = int(request.match_info["code"])
    return web.Response(status=code, text=f"error body {code}")


async def _multi_header_handler(request: web.Request) -> web.Response:
    response = web.Response(text="ok")
    response.headers.add("X-Multi", "first")
    response.headers.add("X-Multi", "second")
    return response


def create_test_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/bytes/{size}", _bytes_handler)
    app.router.add_route("*", "/echo", _echo_handler)
    app.router.add_get("/slow/{size}", _slow_handler)
    app.router.add_get("/status/{code}", _status_handler)
    app.router.add_get("/multi", _multi_header_handler)
    return app


@pytest.fixture
def http_server():
    server = LocalServer(create_test_app()).start()
    yield server
    server.stop()


# =============================================================================
# Certificates
# =============================================================================


@dataclass
class CertificateBundle:
    cert_pem: bytes
    cert_der: bytes
    key_pem: bytes
    cert_path: str
    key_path: str


def _build_self_signed_certificate() -> tuple[x509.Certificate, rsa.RSAPrivateKey]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.UTC)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), critical=False
        )
        .sign(key, hashes.SHA256())
    )
    return certificate, key


@pytest.fixture(scope="session")
def self_signed_cert(tmp_path_factory) -> CertificateBundle:
    certificate, key = _build_self_signed_certificate()
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )

    directory = tmp_path_factory.mktemp("certs")
    cert_path = directory / "server.pem"
    key_path = directory / "server.key"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)

    return CertificateBundle(
        cert_pem=cert_pem,
        cert_der=certificate.public_bytes(serialization.Encoding.DER),
        key_pem=key_pem,
        cert_path=str(cert_path),
        key_path=str(key_path),
    )


@pytest.fixture
def https_server(self_signed_cert):
    server_context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    server_context.load_cert_chain(self_signed_cert.cert_path, self_signed_cert.key_path)
    server = LocalServer(create_test_app(), ssl_context=server_context).start()
    yield server
    server.stop()
