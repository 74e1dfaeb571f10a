"""Tests for restresponse.aio module."""

import gzip
from unittest.mock import AsyncMock, MagicMock

import pytest

from restresponse.aio import from_async_stream, read_response
from restresponse.errors import ParseError, StreamReadError
from restresponse.response import RestResponse


async def _chunks(*parts, error=None):
    for part in parts:
        yield part
    if error is not None:
        raise error


class TestReadResponse:
    """Tests for read_response."""

    @pytest.mark.asyncio
    async def test_buffers_chunks(self):
        """Test chunks are joined into a pre-materialized response."""
        resp = await read_response(
            200, [("Content-Type", "application/json")], _chunks(b"[1, ", b"2]")
        )
        assert isinstance(resp, RestResponse)
        assert resp.consumed
        assert resp.as_json_array() == [1, 2]
        assert resp.as_stream() is None

    @pytest.mark.asyncio
    async def test_mapping_headers(self):
        resp = await read_response(404, {"X-Id": "7"}, _chunks(b'{"error":"not found"}'))
        assert resp.headers == {"X-Id": "7"}
        assert resp.is_success is False
        with pytest.raises(ParseError):
            resp.as_json_array()

    @pytest.mark.asyncio
    async def test_none_headers_skipped(self):
        resp = await read_response(200, [None, ("A", "1"), ("A", "2")], _chunks())
        assert resp.headers == {"A": "2"}
        assert resp.as_bytes() == b""

    @pytest.mark.asyncio
    async def test_decompresses(self):
        resp = await read_response(
            200, {"Content-Encoding": "gzip"}, _chunks(gzip.compress(b"zipped"))
        )
        assert resp.text == "zipped"

    @pytest.mark.asyncio
    async def test_decompress_disabled(self):
        raw = gzip.compress(b"zipped")
        resp = await read_response(
            200, {"Content-Encoding": "gzip"}, _chunks(raw), auto_decompress=False
        )
        assert resp.as_bytes() == raw

    @pytest.mark.asyncio
    async def test_config_forwarded(self, counting_loads):
        resp = await read_response(200, None, _chunks(b"{}"), json_loads=counting_loads)
        resp.as_json_object()
        resp.as_json_object()
        assert counting_loads.calls == 1

    @pytest.mark.asyncio
    async def test_read_failure(self):
        """Test a transport error mid-read surfaces as StreamReadError."""
        with pytest.raises(StreamReadError):
            await read_response(200, None, _chunks(b"part", error=ConnectionResetError()))


class TestFromAsyncStream:
    """Tests for from_async_stream."""

    @pytest.mark.asyncio
    async def test_wraps_and_closes(self):
        """Test an async streaming response is buffered and closed."""
        stream = MagicMock()
        stream.status_code = 201
        stream.raw_headers = [("Content-Type", "text/plain; charset=utf-8")]
        stream.aiter_bytes = lambda: _chunks(b"hello ", b"world")
        stream.close = AsyncMock()

        resp = await from_async_stream(stream)
        assert resp.status_code == 201
        assert resp.text == "hello world"
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_headers_and_sync_close(self):
        stream = MagicMock(spec=["status_code", "headers", "aiter_bytes", "close"])
        stream.status_code = 200
        stream.headers = {"X-A": "1"}
        stream.aiter_bytes = lambda: _chunks(b"ok")
        stream.close = MagicMock(return_value=None)

        resp = await from_async_stream(stream)
        assert resp.headers == {"X-A": "1"}
        stream.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_source_without_close(self):
        """Test a source lacking close() is wrapped without AttributeError."""
        stream = MagicMock(spec=["status_code", "raw_headers", "aiter_bytes"])
        stream.status_code = 200
        stream.raw_headers = []
        stream.aiter_bytes = lambda: _chunks(b"no close")

        resp = await from_async_stream(stream)
        assert resp.as_bytes() == b"no close"

    @pytest.mark.asyncio
    async def test_failure_without_close_keeps_read_error(self):
        stream = MagicMock(spec=["status_code", "raw_headers", "aiter_bytes"])
        stream.status_code = 200
        stream.raw_headers = []
        stream.aiter_bytes = lambda: _chunks(error=OSError("dropped"))

        with pytest.raises(StreamReadError):
            await from_async_stream(stream)

    @pytest.mark.asyncio
    async def test_closes_on_failure(self):
        stream = MagicMock()
        stream.status_code = 200
        stream.raw_headers = []
        stream.aiter_bytes = lambda: _chunks(error=OSError("dropped"))
        stream.close = AsyncMock()

        with pytest.raises(StreamReadError):
            await from_async_stream(stream)
        stream.close.assert_awaited_once()
