"""CRC32 and Adler-32 checksums as used by the framing of the auth protocols."""

from __future__ import annotations

import zlib

_MASK = 0xFFFFFFFF


def crc32(data: bytes) -> int:
    """Return the standard (reflected, 0xEDB88320) CRC32 of ``data``."""
    return zlib.crc32(data) & _MASK


def crc32_le(data: bytes) -> bytes:
    """Return the CRC32 of ``data`` as four little-endian bytes."""
    return crc32(data).to_bytes(4, "little")


def with_crc32(data: bytes) -> bytes:
    """Append a four-byte CRC trailer to ``data``.

    The trailer is the raw CRC register (without the final inversion), so the
    CRC32 of the whole returned packet is always 0xFFFFFFFF.
    """
    register = crc32(data) ^ _MASK
    return bytes(data) + register.to_bytes(4, "little")


def adler32(data: bytes) -> int:
    """Return the Adler-32 checksum of ``data``."""
    return zlib.adler32(data) & _MASK


def with_adler32(data: bytes) -> bytes:
    """Append the little-endian Adler-32 of ``data`` to it."""
    return bytes(data) + adler32(data).to_bytes(4, "little")


def verify_adler32(packet: bytes) -> bool:
    """Check that the last four bytes of ``packet`` are the Adler-32 of the rest."""
    if len(packet) < 4:
        return False
    body, trailer = packet[:-4], packet[-4:]
    return adler32(body) == int.from_bytes(trailer, "little")