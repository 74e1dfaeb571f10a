"""Async helpers that buffer a body off the event loop's stream and wrap it.

The adapter itself is synchronous. On the async path the body is read in
full first, then handed to ``RestResponse.from_buffered`` so no stream is
left to drain.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any

from .entity import BufferedResponse
from .errors import RestResponseError, StreamReadError
from .response import RestResponse


def _header_map(
    headers: Mapping[str, str] | Iterable[tuple[str, str] | None] | None,
) -> dict[str, str]:
    if headers is None:
        return {}
    if isinstance(headers, Mapping):
        return dict(headers)
    return {pair[0]: pair[1] for pair in headers if pair is not None}


async def read_response(
    status_code: int,
    headers: Mapping[str, str] | Iterable[tuple[str, str] | None] | None,
    chunks: AsyncIterable[bytes],
    auto_decompress: bool = True,
    **config: Any,
) -> RestResponse:
    """
    Collect an async body into memory and wrap it in a RestResponse.

    Args:
        status_code: HTTP status code
        headers: Header mapping or (name, value) pairs
        chunks: Async iterable yielding the body as sent on the wire
        auto_decompress: Undo Content-Encoding before buffering (default: True)
        **config: Passed to RestResponse.from_buffered()

    Raises:
        StreamReadError: If the async source fails mid-read
    """
    header_map = _header_map(headers)
    parts: list[bytes] = []
    try:
        async for chunk in chunks:
            parts.append(chunk)
    except RestResponseError:
        raise
    except Exception as exc:
        raise StreamReadError(f"Failed to read response body: {exc}") from exc

    return RestResponse.from_buffered(
        BufferedResponse(status_code, b"".join(parts), header_map),
        auto_decompress=auto_decompress,
        **config,
    )


async def from_async_stream(resp: Any, **config: Any) -> RestResponse:
    """
    Buffer an async streaming response and wrap it, closing it afterwards.

    ``resp`` needs ``status_code``, ``raw_headers`` or ``headers``, and an
    ``aiter_bytes()`` method. Its chunks are taken as already decoded.
    """
    headers = getattr(resp, "raw_headers", None)
    if headers is None:
        headers = getattr(resp, "headers", None)
    try:
        return await read_response(
            resp.status_code, headers, resp.aiter_bytes(), auto_decompress=False, **config
        )
    finally:
        close = getattr(resp, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result
