"""
Content-Encoding decoding for materialized bodies.

Supports gzip, deflate, and brotli (br) encodings.
"""

from __future__ import annotations

import gzip
import logging
import zlib
from collections.abc import Callable

import brotli

logger = logging.getLogger(__name__)


def _inflate(data: bytes) -> bytes:
    # Servers send both raw and zlib-wrapped deflate streams
    try:
        return zlib.decompress(data, -zlib.MAX_WBITS)
    except zlib.error:
        return zlib.decompress(data)


DECODERS: dict[str, Callable[[bytes], bytes]] = {
    "gzip": gzip.decompress,
    "x-gzip": gzip.decompress,
    "deflate": _inflate,
    "br": brotli.decompress,
}


def split_encodings(content_encoding: str | None) -> list[str]:
    """Return the codings named by a Content-Encoding value, in applied order."""
    if not content_encoding:
        return []
    return [e.strip().lower() for e in content_encoding.split(",") if e.strip()]


def decode_content(body: bytes, content_encoding: str | None) -> bytes:
    """
    Undo the codings listed in a Content-Encoding header.

    Codings are removed last-applied first. ``identity`` and unknown codings
    are passed through. If a coding fails to decode, the body is returned
    exactly as received.

    Args:
        body: Body bytes as read off the wire
        content_encoding: Value of the Content-Encoding header, if any

    Returns:
        Decoded body bytes
    """
    encodings = split_encodings(content_encoding)
    if not encodings or not body:
        return body

    result = body
    for enc in reversed(encodings):
        decoder = DECODERS.get(enc)
        if decoder is None:
            continue
        try:
            result = decoder(result)
        except (OSError, EOFError, zlib.error, brotli.error) as exc:
            logger.warning("Could not decode %s content, keeping raw body: %s", enc, exc)
            return body
    return result
