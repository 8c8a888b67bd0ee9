"""Reverse transport-level compression on fetched response bodies."""

from __future__ import annotations

import gzip
import zlib
from typing import Optional

from .errors import ReadError


def _inflate(body: bytes) -> bytes:
    # "deflate" is zlib-wrapped per RFC 9110, but plenty of servers send raw streams.
    try:
        return zlib.decompress(body)
    except zlib.error:
        return zlib.decompress(body, -zlib.MAX_WBITS)


def decode_body(body: bytes, content_encoding: Optional[str]) -> bytes:
    """Return *body* with its declared ``Content-Encoding`` removed.

    Only ``gzip`` and ``deflate`` are understood; any other scheme (or none)
    passes the bytes through untouched.

    Raises:
        ReadError: If the body is not valid data for the declared scheme.
    """
    scheme = (content_encoding or "").strip().lower()
    try:
        if scheme == "gzip":
            return gzip.decompress(body)
        if scheme == "deflate":
            return _inflate(body)
    except (OSError, EOFError, zlib.error) as exc:
        raise ReadError(f"Malformed {scheme} body: {exc}") from exc
    return body


TEXT_ERRORS = "surrogateescape"


def body_to_text(body: bytes) -> str:
    """Decode response bytes as UTF-8 without losing non-UTF-8 bytes.

    Undecodable bytes become lone surrogates, which encoding with
    :data:`TEXT_ERRORS` turns back into the bytes received.
    """
    return body.decode("utf-8", errors=TEXT_ERRORS)
