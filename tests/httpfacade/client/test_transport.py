"""Tests for method/header validation and the aiohttp transport."""

import socket

import pytest
from multidict import CIMultiDict

from httpfacade.client.models import RequestSnapshot
from httpfacade.client.transport import (
    AiohttpTransport,
    header_map,
    validate_headers,
    validate_method,
)
from httpfacade.errors import ConnectionOpenError, ProtocolViolationError


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


SNAPSHOT = RequestSnapshot(connection_timeout_ms=2000, read_timeout_ms=2000, buffer_size=1024)


class TestValidateMethod:
    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH", "PROPFIND", "get"])
    def test_tokens_accepted(self, method):
        validate_method(method)

    @pytest.mark.parametrize("method", ["", "BAD METHOD", "GET\r\n", "GÉT", "(GET)"])
    def test_non_tokens_rejected(self, method):
        with pytest.raises(ProtocolViolationError) as exc_info:
            validate_method(method)
        assert exc_info.value.message == f"Invalid protocol: '{method}'"
        assert exc_info.value.context["http_method"] == method


class TestValidateHeaders:
    def test_none_and_empty(self):
        validate_headers(None)
        validate_headers({})

    def test_valid_headers(self):
        validate_headers({"Accept": "*/*", "X-Request-Id": "abc 123", "Authorization": "Bearer t"})

    def test_bad_name(self):
        with pytest.raises(ProtocolViolationError, match="Invalid header: 'Bad Name'"):
            validate_headers({"Bad Name": "v"})

    @pytest.mark.parametrize("value", ["a\r\nX-Injected: 1", "line\nbreak", "nul\x00"])
    def test_bad_value(self, value):
        with pytest.raises(ProtocolViolationError, match="Invalid header value for 'X-Test'"):
            validate_headers({"X-Test": value})


class TestHeaderMap:
    def test_groups_repeated_names_in_order(self):
        headers = CIMultiDict()
        headers.add("Set-Cookie", "a=1")
        headers.add("Content-Type", "text/plain")
        headers.add("Set-Cookie", "b=2")

        assert header_map(headers) == {
            "Set-Cookie": ["a=1", "b=2"],
            "Content-Type": ["text/plain"],
        }

    def test_empty(self):
        assert header_map({}) == {}


class TestAiohttpTransport:
    @pytest.mark.asyncio
    async def test_connection_refused_is_open_error(self):
        url = f"http://127.0.0.1:{_unused_port()}/"
        connection = await AiohttpTransport().open(url, SNAPSHOT)
        try:
            connection.configure("GET", None)
            with pytest.raises(ConnectionOpenError):
                await connection.send(None)
        finally:
            await connection.close()

    @pytest.mark.asyncio
    async def test_configure_rejects_invalid_method(self):
        connection = await AiohttpTransport().open("http://127.0.0.1:1/", SNAPSHOT)
        try:
            with pytest.raises(ProtocolViolationError):
                connection.configure("NOT VALID", None)
        finally:
            await connection.close()

    @pytest.mark.asyncio
    async def test_reads_before_send_are_empty(self):
        connection = await AiohttpTransport().open("http://127.0.0.1:1/", SNAPSHOT)
        try:
            assert await connection.read(10) == b""
            assert await connection.read_error(10) == b""
        finally:
            await connection.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        connection = await AiohttpTransport().open("http://127.0.0.1:1/", SNAPSHOT)
        await connection.close()
        await connection.close()

    @pytest.mark.asyncio
    async def test_send_without_open_fails(self):
        from httpfacade.client.transport import AiohttpConnection

        connection = AiohttpConnection("http://127.0.0.1:1/", SNAPSHOT)
        with pytest.raises(ConnectionOpenError, match="not opened"):
            await connection.send(None)
