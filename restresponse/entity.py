"""
Transport-side objects a RestResponse wraps.

A stream-backed response carries an Entity whose content stream can be
handed out once. A buffered response already holds its whole body.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Protocol

from .errors import StreamAlreadyConsumed

if TYPE_CHECKING:
    import http.client


DEFAULT_CHUNK_SIZE = 8192


class Readable(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


def parse_charset(content_type: str | None) -> str | None:
    """Return the charset parameter of a Content-Type value, if any."""
    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset":
            value = value.strip().strip("\"'")
            return value or None
    return None


def _find_header(headers: Iterable[tuple[str, str] | None], name: str) -> str | None:
    # Last occurrence wins, matched case-insensitively.
    found = None
    target = name.lower()
    for pair in headers:
        if pair is not None and pair[0].lower() == target:
            found = pair[1]
    return found


class ContentStream:
    """
    Readable one-shot view over a body source.

    The source is either a binary file-like object or an iterable of byte
    chunks (e.g. a socket reader generator). Reading after close raises
    StreamAlreadyConsumed.
    """

    def __init__(
        self,
        source: Readable | Iterable[bytes],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._source = source
        self._chunk_size = chunk_size
        self._iterator: Iterator[bytes] | None = None
        self._pending = b""
        self._exhausted = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return not self._closed

    def _next_chunk(self) -> bytes:
        if hasattr(self._source, "read"):
            return self._source.read(self._chunk_size)  # type: ignore[union-attr]
        if self._iterator is None:
            self._iterator = iter(self._source)  # type: ignore[arg-type]
        return next(self._iterator, b"")

    def read(self, size: int = -1) -> bytes:
        """
        Read up to ``size`` bytes, or everything that is left when ``size``
        is negative. Returns b"" once the source is exhausted.
        """
        if self._closed:
            raise StreamAlreadyConsumed("Content stream has been closed")

        chunks = [self._pending] if self._pending else []
        have = len(self._pending)
        self._pending = b""
        while not self._exhausted and (size < 0 or have < size):
            data = self._next_chunk()
            if not data:
                self._exhausted = True
                break
            chunks.append(data)
            have += len(data)

        out = b"".join(chunks)
        if size >= 0 and len(out) > size:
            out, self._pending = out[:size], out[size:]
        return out

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self._chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        """Close the stream and the underlying source."""
        if self._closed:
            return
        self._closed = True
        self._pending = b""
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> ContentStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<ContentStream [{state}]>"


class Entity:
    """
    Response body as delivered by the transport.

    The content stream can be taken exactly once; asking again raises
    StreamAlreadyConsumed, whether the first taker read it or not.

    Args:
        source: File-like object or iterable of byte chunks holding the body
        content_type: Value of the Content-Type header
        content_encoding: Value of the Content-Encoding header
        content_length: Declared body length, if known
        chunk_size: Read size used by the content stream (default: 8192)
    """

    def __init__(
        self,
        source: Readable | Iterable[bytes],
        content_type: str | None = None,
        content_encoding: str | None = None,
        content_length: int | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.content_type = content_type
        self.content_encoding = content_encoding
        self.content_length = content_length
        self._stream: ContentStream | None = ContentStream(source, chunk_size)

    @property
    def charset(self) -> str | None:
        return parse_charset(self.content_type)

    @property
    def consumed(self) -> bool:
        return self._stream is None

    @property
    def content(self) -> ContentStream:
        if self._stream is None:
            raise StreamAlreadyConsumed("Content has already been consumed")
        stream, self._stream = self._stream, None
        return stream

    def consume_content(self) -> None:
        """Drain and close the content stream unless it was already taken."""
        if self._stream is None:
            return
        with self.content as stream:
            for _ in stream:
                pass

    def __repr__(self) -> str:
        return f"<Entity {self.content_type or 'unknown'} consumed={self.consumed}>"


class TransportResponse:
    """
    Stream-backed response as produced by a blocking transport.

    Headers keep wire order and may contain None entries, which readers skip.
    """

    def __init__(
        self,
        status_code: int,
        headers: Iterable[tuple[str, str] | None] | None = None,
        entity: Entity | None = None,
        reason: str = "",
        http_version: str = "1.1",
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.http_version = http_version
        self.headers: list[tuple[str, str] | None] = list(headers or [])
        self.entity = entity

    @classmethod
    def from_headers(
        cls,
        status_code: int,
        headers: Iterable[tuple[str, str] | None],
        body: Readable | Iterable[bytes] | None,
        reason: str = "",
        http_version: str = "1.1",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> TransportResponse:
        """Build a response whose entity metadata is read from ``headers``."""
        headers = list(headers)
        entity = None
        if body is not None:
            length = _find_header(headers, "Content-Length")
            entity = Entity(
                body,
                content_type=_find_header(headers, "Content-Type"),
                content_encoding=_find_header(headers, "Content-Encoding"),
                content_length=int(length) if length and length.isdigit() else None,
                chunk_size=chunk_size,
            )
        return cls(status_code, headers, entity, reason=reason, http_version=http_version)

    @classmethod
    def from_http_client(
        cls,
        resp: http.client.HTTPResponse,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> TransportResponse:
        """Wrap a standard library ``http.client.HTTPResponse``."""
        http_version = "1.0" if resp.version == 10 else "1.1"
        return cls.from_headers(
            resp.status,
            resp.getheaders(),
            resp,
            reason=resp.reason,
            http_version=http_version,
            chunk_size=chunk_size,
        )

    def __repr__(self) -> str:
        return f"<TransportResponse [{self.status_code}]>"


class BufferedResponse:
    """Response whose body was fully read by the transport before delivery."""

    def __init__(
        self,
        status_code: int,
        data: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.data = data
        self.headers = headers

    def __repr__(self) -> str:
        return f"<BufferedResponse [{self.status_code}] {len(self.data)} bytes>"
