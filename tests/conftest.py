"""Pytest configuration and fixtures."""

import io
import json

import pytest

from restresponse.entity import BufferedResponse, TransportResponse


class RecordingSource(io.BytesIO):
    """In-memory body that records how often it was read and closed."""

    def __init__(self, data: bytes = b"") -> None:
        super().__init__(data)
        self.read_calls = 0
        self.close_calls = 0

    def read(self, size=-1):
        self.read_calls += 1
        return super().read(size)

    def close(self):
        self.close_calls += 1
        super().close()


class CountingLoads:
    """json.loads stand-in that counts parses."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, text):
        self.calls += 1
        return json.loads(text)


@pytest.fixture
def make_transport():
    """Build a stream-backed TransportResponse over a RecordingSource."""

    def _make(body=b"", status_code=200, headers=None):
        source = RecordingSource(body)
        resp = TransportResponse.from_headers(
            status_code, headers if headers is not None else [], source, reason="OK"
        )
        return resp, source

    return _make


@pytest.fixture
def not_found_buffered():
    """Buffered 404 with a JSON error body."""
    return BufferedResponse(
        status_code=404,
        data=b'{"error":"not found"}',
        headers={"Content-Type": "application/json"},
    )


@pytest.fixture
def counting_loads():
    return CountingLoads()
