from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from .compression import decode_content
from .entity import (
    DEFAULT_CHUNK_SIZE,
    BufferedResponse,
    ContentStream,
    Entity,
    TransportResponse,
    parse_charset,
)
from .errors import (
    DecodeError,
    ParseError,
    RestResponseError,
    StreamAlreadyConsumed,
    StreamReadError,
)

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"


def is_success(status_code: int) -> bool:
    """Return True for 2xx status codes."""
    return 200 <= status_code < 300


def _collect_headers(pairs: Iterable[tuple[str, str] | None] | None) -> dict[str, str]:
    # Names keep their received case; the last duplicate wins.
    out: dict[str, str] = {}
    for pair in pairs or ():
        if pair is None:
            continue
        name, value = pair
        out[name] = value
    return out


def _lookup(headers: Mapping[str, str], name: str) -> str | None:
    target = name.lower()
    return next((v for k, v in headers.items() if k.lower() == target), None)


class RestResponse:
    """
    REST response whose body is read at most once and then served as bytes,
    text, or JSON.

    Build it from a stream-backed TransportResponse with ``RestResponse(resp)``
    or from a fully buffered response with ``RestResponse.from_buffered(resp)``.
    The first body accessor materializes the stream into an owned buffer and
    closes it; every later accessor works from that buffer. Use the response
    as a context manager (or call close()) so the stream is released even when
    no accessor runs.

    Args:
        response: Transport response carrying status, headers and an entity
        default_encoding: Charset used when the entity declares none (default: utf-8)
        chunk_size: Read size used while draining the stream (default: 8192)
        auto_decompress: Undo Content-Encoding while materializing (default: True)
        json_loads: Callable turning text into a JSON tree (default: json.loads)
    """

    def __init__(
        self,
        response: TransportResponse,
        *,
        default_encoding: str = DEFAULT_ENCODING,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        auto_decompress: bool = True,
        json_loads: Callable[[str], Any] = json.loads,
    ) -> None:
        self._setup(
            response.status_code,
            _collect_headers(response.headers),
            default_encoding,
            chunk_size,
            auto_decompress,
            json_loads,
        )
        self._transport: TransportResponse | None = response

    @classmethod
    def from_buffered(
        cls,
        response: BufferedResponse,
        *,
        default_encoding: str = DEFAULT_ENCODING,
        auto_decompress: bool = True,
        json_loads: Callable[[str], Any] = json.loads,
    ) -> RestResponse:
        """
        Wrap a response whose body the transport has already read.

        With ``auto_decompress`` the buffer is decoded according to the
        Content-Encoding header, as the stream-backed path does.
        """
        self = cls.__new__(cls)
        headers = dict(response.headers or {})
        self._setup(
            response.status_code,
            headers,
            default_encoding,
            DEFAULT_CHUNK_SIZE,
            auto_decompress,
            json_loads,
        )
        self._transport = None
        body = bytes(response.data)
        if auto_decompress:
            body = decode_content(body, _lookup(headers, "Content-Encoding"))
        self._body = body
        self._charset = parse_charset(_lookup(headers, "Content-Type"))
        return self

    def _setup(
        self,
        status_code: int,
        headers: dict[str, str],
        default_encoding: str,
        chunk_size: int,
        auto_decompress: bool,
        json_loads: Callable[[str], Any],
    ) -> None:
        self.status_code = status_code
        self._headers = headers
        self._default_encoding = default_encoding
        self._chunk_size = chunk_size
        self._auto_decompress = auto_decompress
        self._json_loads = json_loads
        # Guards the one-time transitions below; reentrant because the
        # derived views materialize the body while holding it.
        self._lock = threading.RLock()
        self._body: bytes | None = None
        self._charset: str | None = None
        self._released = False
        self._read_error: StreamReadError | None = None
        self._text: str | None = None
        self._json_object: dict[str, Any] | None = None
        self._json_array: list[Any] | None = None

    @property
    def headers(self) -> Mapping[str, str]:
        return MappingProxyType(self._headers)

    @property
    def is_success(self) -> bool:
        return is_success(self.status_code)

    @property
    def consumed(self) -> bool:
        """True once the body buffer exists, including after as_stream()."""
        return self._body is not None

    @property
    def encoding(self) -> str:
        return self._charset or self._default_encoding

    def _entity(self) -> Entity | None:
        if self._transport is None:
            return None
        return self._transport.entity

    def consume(self) -> None:
        """
        Fully read the entity content into the body buffer and close the stream.

        Calling it again is a no-op. A stream that turns out to be already
        consumed yields an empty body instead of an error.

        Raises:
            StreamReadError: If reading the stream fails. The body stays unset,
                and later calls raise StreamReadError again, chained to the
                original failure
        """
        with self._lock:
            if self._body is not None:
                self._discard_content()
                return

            if self._read_error is not None:
                # The stream was lost to the failed read; report that again.
                raise StreamReadError(
                    f"Response body could not be read: {self._read_error}"
                ) from self._read_error

            entity = self._entity()
            if entity is None:
                self._body = b""
                return

            self._charset = entity.charset
            try:
                raw = self._drain(entity)
            except StreamReadError as exc:
                self._read_error = exc
                raise
            except StreamAlreadyConsumed:
                if self._released:
                    logger.debug("Body requested after close() released the stream")
                else:
                    logger.warning(
                        "Content has already been consumed for %r", self, exc_info=True
                    )
                self._body = b""
                return

            if self._auto_decompress:
                raw = decode_content(raw, entity.content_encoding)
            self._body = raw

    def consume_quietly(self) -> None:
        """Like consume(), but any failure is logged instead of raised."""
        try:
            self.consume()
        except Exception:
            logger.exception("Content could not be read for %r", self)

    def _drain(self, entity: Entity) -> bytes:
        stream = entity.content
        chunks: list[bytes] = []
        try:
            while True:
                chunk = stream.read(self._chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        except RestResponseError:
            raise
        except Exception as exc:
            # OSError, http.client.IncompleteRead and other transport faults
            raise StreamReadError(f"Failed to read response body: {exc}") from exc
        finally:
            _close_quietly(stream)
        return b"".join(chunks)

    def as_bytes(self) -> bytes:
        """
        Return the whole body, reading the stream on first use.

        Raises:
            StreamReadError: If the stream read fails
        """
        if self._body is None:
            self.consume()
        assert self._body is not None
        return self._body

    @property
    def content(self) -> bytes:
        return self.as_bytes()

    def as_string(self) -> str:
        """
        Return the body decoded with the declared charset, else the default.

        Raises:
            DecodeError: If the bytes are invalid for the charset, or the
                charset is unknown
            StreamReadError: If the stream read fails
        """
        with self._lock:
            if self._text is None:
                body = self.as_bytes()
                encoding = self.encoding
                try:
                    self._text = body.decode(encoding)
                except UnicodeDecodeError as exc:
                    raise DecodeError(f"Response body is not valid {encoding}: {exc}") from exc
                except LookupError as exc:
                    raise DecodeError(f"Unknown response charset {encoding!r}") from exc
            return self._text

    @property
    def text(self) -> str:
        return self.as_string()

    def _parse(self, shape: type, label: str) -> Any:
        text = self.as_string()
        try:
            value = self._json_loads(text)
        except (ValueError, RecursionError) as exc:
            raise ParseError(f"Response body is not valid JSON: {exc}") from exc
        if not isinstance(value, shape):
            raise ParseError(
                f"Expected a JSON {label}, got {type(value).__name__}"
            )
        return value

    def as_json_object(self) -> dict[str, Any]:
        """
        Parse the body as a JSON object; the result is cached.

        Raises:
            ParseError: If the text is malformed or not an object
        """
        with self._lock:
            if self._json_object is None:
                self._json_object = self._parse(dict, "object")
            return self._json_object

    def as_json_array(self) -> list[Any]:
        """
        Parse the body as a JSON array; the result is cached.

        Raises:
            ParseError: If the text is malformed or not an array
        """
        with self._lock:
            if self._json_array is None:
                self._json_array = self._parse(list, "array")
            return self._json_array

    def json(self) -> Any:
        """Parse the body as any JSON value, reusing a cached object or array."""
        with self._lock:
            if self._json_object is not None:
                return self._json_object
            if self._json_array is not None:
                return self._json_array
            return self._parse(object, "value")

    def as_stream(self) -> ContentStream | None:
        """
        Hand the live content stream to the caller, who must read and close it.

        The body buffer becomes empty, so as_bytes() returns b"" and as_string()
        returns "" afterwards; the JSON accessors raise ParseError.

        Returns:
            The content stream, or None if it was already consumed or the
            response has no stream
        """
        with self._lock:
            if self._body is None:
                self._body = b""
            entity = self._entity()
            if entity is None:
                return None
            try:
                return entity.content
            except StreamAlreadyConsumed:
                logger.warning(
                    "Content has already been consumed for %r", self, exc_info=True
                )
                return None

    def _discard_content(self) -> None:
        entity = self._entity()
        if entity is None:
            return
        try:
            entity.consume_content()
        except Exception:
            # Already closed or broken; nothing left to release.
            logger.debug("Ignoring error while discarding content", exc_info=True)

    def close(self) -> None:
        """Drain and release the stream if this response still owns it."""
        with self._lock:
            self._released = True
            self._discard_content()

    def dispose_quietly(self) -> None:
        self.close()

    def __enter__(self) -> RestResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __str__(self) -> str:
        try:
            return self.as_string()
        except Exception:
            logger.warning("Could not render %r as text", self, exc_info=True)
            return "" if self._transport is None else str(self._transport)

    def __repr__(self) -> str:
        return f"<RestResponse [{self.status_code}]>"


def _close_quietly(stream: ContentStream) -> None:
    try:
        stream.close()
    except Exception:
        logger.debug("Ignoring error while closing content stream", exc_info=True)
