"""Standard-alphabet base64 with the lenient decoding rules of the server."""

from __future__ import annotations

import base64

_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DECODE = {ch: value for value, ch in enumerate(_ALPHABET)}
_PAD = "="

__all__ = ["Base64Error", "encode", "decode", "encoded_size", "decoded_size"]


class Base64Error(ValueError):
    """Raised when base64 input holds a character outside the alphabet."""


def encoded_size(length: int) -> int:
    """Number of characters needed to encode ``length`` bytes."""
    return (length + 2) // 3 * 4


def decoded_size(length: int) -> int:
    """Upper bound on bytes produced by decoding ``length`` characters."""
    return length // 4 * 3


def encode(data: bytes) -> str:
    """Encode ``data`` as padded base64 text."""
    return base64.b64encode(bytes(data)).decode("ascii")


def decode(text: str | bytes) -> bytes:
    """Decode base64 ``text``.

    Decoding stops at the first padding character; anything after it is
    ignored. Incomplete trailing bits are dropped.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("latin-1")
    out = bytearray()
    acc = 0
    bits = 0
    for position, ch in enumerate(text):
        if ch == _PAD:
            break
        value = _DECODE.get(ch)
        if value is None:
            raise Base64Error(f"invalid base64 character {ch!r} at position {position}")
        acc = ((acc << 6) | value) & 0xFFFF
        bits += 6
        if bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
    return bytes(out)