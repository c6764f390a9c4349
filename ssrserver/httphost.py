"""Extract the Host header from the start of an HTTP request."""

from __future__ import annotations

from typing import Union

__all__ = [
    "HttpParseError",
    "IncompleteRequestError",
    "NoHostHeaderError",
    "DEFAULT_PORT",
    "parse_http_host",
    "get_header",
]

DEFAULT_PORT = 80

Text = Union[str, bytes, bytearray, memoryview]


class HttpParseError(ValueError):
    """Raised when an HTTP request cannot yield the wanted header."""


class IncompleteRequestError(HttpParseError):
    """The request ends before the blank line closing its headers."""


class NoHostHeaderError(HttpParseError):
    """The request headers are complete but contain no Host header."""


def _as_bytes(value: Text) -> bytes:
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


def _next_header(data: bytes, pos: int, remaining: int) -> tuple[int, int, int]:
    """Advance past the current line; return (pos, remaining, next header length)."""
    while remaining > 2 and data[pos] != 0x0D and data[pos + 1] != 0x0A:
        remaining -= 1
        pos += 1
    pos += 2
    remaining -= 2
    length = 0
    while (
        remaining > length + 1
        and data[pos + length] != 0x0D
        and data[pos + length + 1] != 0x0A
    ):
        length += 1
    return pos, remaining, length


def get_header(name: Text, data: Text) -> str:
    """Return the value of header ``name`` (e.g. ``"Host:"``) in request ``data``.

    The request line is skipped; matching is case-insensitive and leading
    blanks of the value are dropped.
    """
    prefix = _as_bytes(name).lower()
    raw = _as_bytes(data)
    pos, remaining = 0, len(raw)
    while True:
        pos, remaining, length = _next_header(raw, pos, remaining)
        if length == 0:
            break
        line = raw[pos : pos + length]
        if length > len(prefix) and line[: len(prefix)].lower() == prefix:
            start = len(prefix)
            while start < length and line[start] in b" \t":
                start += 1
            return line[start:].decode("latin-1")
    if remaining == 0:
        raise IncompleteRequestError("request headers are incomplete")
    raise NoHostHeaderError(f"no {prefix.decode('latin-1')} header in request")


def parse_http_host(data: Text) -> str:
    """Return the host named by the Host header of ``data``, without any port."""
    raw = _as_bytes(data)
    if not raw:
        raise IncompleteRequestError("empty request")
    host = get_header("Host:", raw)
    colon = host.rfind(":")
    if colon >= 0:
        host = host[:colon]
    return host