"""Client side of the auth_simple and auth_sha1 family of framing protocols.

Every protocol cuts the outgoing stream into frames of at most 2000 bytes of
payload, each padded with a little random data and closed by a checksum. The
first frame of a connection also carries the connection identity and, for
the sha1 variants, an HMAC keyed by the stream IV and key.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from .checksums import crc32, crc32_le, verify_adler32, with_adler32, with_crc32
from .ciphers import rand_bytes, sha1_hmac

__all__ = [
    "ProtocolError",
    "ServerInfo",
    "AuthGlobal",
    "AuthSimple",
    "AuthSha1",
    "AuthSha1V2",
    "AuthSha1V4",
    "HMAC_SHA1_LEN",
    "UNIT_SIZE",
    "RECV_LIMIT",
]

BytesLike = Union[bytes, bytearray, memoryview]

UNIT_SIZE = 2000
RECV_LIMIT = 16384
MAX_FRAME = 8192
HMAC_SHA1_LEN = 10
DEFAULT_HEAD_SIZE = 30

_rng = random.SystemRandom()


class ProtocolError(Exception):
    """Raised when received frames are malformed or fail their checks."""


def _rand() -> int:
    return _rng.getrandbits(64)


def _timestamp() -> bytes:
    return (int(time.time()) & 0xFFFFFFFF).to_bytes(4, "little")


def _head_size(data: bytes, default: int = DEFAULT_HEAD_SIZE) -> int:
    """Length of the address header at the start of ``data``."""
    if len(data) < 2:
        return default
    kind = data[0] & 0x07
    if kind == 1:
        return 7
    if kind == 4:
        return 19
    if kind == 3:
        return 4 + data[1]
    return default


def _rand_len_v2(length: int) -> int:
    if length > 1300:
        return 1
    if length > 400:
        return (_rand() & 0x7F) + 1
    return (_rand() & 0x3FF) + 1


def _padding(rand_len: int, long_marker: bool) -> bytes:
    """Random padding of ``rand_len`` bytes that starts with its own length."""
    if rand_len < 128 or not long_marker:
        marker = bytes([rand_len & 0xFF])
    else:
        marker = b"\xff" + rand_len.to_bytes(2, "big")
    return marker + rand_bytes(rand_len - len(marker))


@dataclass
class ServerInfo:
    """Connection parameters shared by the protocol and obfuscation layers."""

    host: str = ""
    port: int = 0
    param: Optional[str] = None
    key: bytes = b""
    iv: bytes = b""
    head_len: int = DEFAULT_HEAD_SIZE

    @property
    def hmac_key(self) -> bytes:
        return bytes(self.iv) + bytes(self.key)


def _new_client_id() -> bytes:
    return rand_bytes(8)


def _new_connection_id() -> int:
    return int.from_bytes(rand_bytes(4), "little") & 0xFFFFFF


@dataclass
class AuthGlobal:
    """State shared by all connections of one client."""

    local_client_id: bytes = field(default_factory=_new_client_id)
    connection_id: int = field(default_factory=_new_connection_id)

    def next_connection_id(self) -> int:
        """Advance and return the connection id, renewing the identity when it runs out."""
        self.connection_id = (self.connection_id + 1) & 0xFFFFFFFF
        if self.connection_id > 0xFF000000:
            self.local_client_id = _new_client_id()
            self.connection_id = _new_connection_id()
        return self.connection_id


class AuthSimple:
    """auth_simple: CRC32-protected frames with a plain identity header."""

    _frame_prefix = 2
    _min_frame = 7

    def __init__(self, server: Optional[ServerInfo] = None,
                 global_data: Optional[AuthGlobal] = None) -> None:
        self.server = server if server is not None else ServerInfo()
        self.global_data = global_data if global_data is not None else AuthGlobal()
        self.has_sent_header = False
        self._recv = bytearray()

    # -- sending ---------------------------------------------------------

    def _pack_data(self, chunk: bytes) -> bytes:
        rand_len = (_rand() & 0xF) + 1
        size = rand_len + len(chunk) + 6
        return with_crc32(size.to_bytes(2, "big") + _padding(rand_len, False) + chunk)

    def _pack_auth_data(self, chunk: bytes) -> bytes:
        rand_len = (_rand() & 0xF) + 1
        size = rand_len + len(chunk) + 6 + 12
        glob = self.global_data
        conn_id = glob.next_connection_id()
        body = (
            size.to_bytes(2, "big")
            + _padding(rand_len, False)
            + _timestamp()
            + glob.local_client_id[:4]
            + conn_id.to_bytes(4, "little")
            + chunk
        )
        return with_crc32(body)

    def _auth_head_size(self, data: bytes) -> int:
        return _head_size(data)

    def client_pre_encrypt(self, data: BytesLike) -> bytes:
        """Frame outgoing ``data``; the first call also sends the identity header."""
        data = bytes(data)
        out = bytearray()
        pos = 0
        if data and not self.has_sent_header:
            size = min(self._auth_head_size(data), len(data))
            out += self._pack_auth_data(data[:size])
            pos = size
            self.has_sent_header = True
        while len(data) - pos > UNIT_SIZE:
            out += self._pack_data(data[pos:pos + UNIT_SIZE])
            pos += UNIT_SIZE
        if pos < len(data):
            out += self._pack_data(data[pos:])
        return bytes(out)

    # -- receiving -------------------------------------------------------

    def _fail(self, message: str) -> ProtocolError:
        self._recv.clear()
        return ProtocolError(message)

    def _check_prefix(self, buffer: bytearray) -> None:
        """Hook for variants whose frames protect their length field."""

    def _verify(self, frame: bytes) -> bool:
        return crc32(frame) == 0xFFFFFFFF

    def _payload_start(self, frame: bytes) -> int:
        return frame[2] + 2

    def client_post_decrypt(self, data: BytesLike) -> bytes:
        """Consume received bytes and return the payload of every complete frame."""
        data = bytes(data)
        if len(self._recv) + len(data) > RECV_LIMIT:
            raise ProtocolError("receive buffer overflow")
        self._recv += data
        out = bytearray()
        buffer = self._recv
        while len(buffer) > self._frame_prefix:
            self._check_prefix(buffer)
            length = int.from_bytes(buffer[:2], "big")
            if length >= MAX_FRAME or length < self._min_frame:
                raise self._fail(f"bad frame length {length}")
            if length > len(buffer):
                break
            frame = bytes(buffer[:length])
            if not self._verify(frame):
                raise self._fail("frame checksum mismatch")
            start = self._payload_start(frame)
            if start > length - 4:
                raise self._fail("frame padding exceeds frame")
            out += frame[start:length - 4]
            del buffer[:length]
        return bytes(out)


class AuthSha1(AuthSimple):
    """auth_sha1: Adler-32 frames and an HMAC-SHA1 protected first frame."""

    def _pack_data(self, chunk: bytes) -> bytes:
        rand_len = (_rand() & 0xF) + 1
        size = rand_len + len(chunk) + 6
        return with_adler32(size.to_bytes(2, "big") + _padding(rand_len, False) + chunk)

    def _pack_auth_data(self, chunk: bytes) -> bytes:
        rand_len = (_rand() & 0x7F) + 1
        size = rand_len + 6 + len(chunk) + 12 + HMAC_SHA1_LEN
        glob = self.global_data
        conn_id = glob.next_connection_id()
        body = (
            crc32_le(self.server.key)
            + size.to_bytes(2, "big")
            + _padding(rand_len, False)
            + _timestamp()
            + glob.local_client_id[:4]
            + conn_id.to_bytes(4, "little")
            + chunk
        )
        return body + sha1_hmac(self.server.hmac_key, body)[:HMAC_SHA1_LEN]

    def _verify(self, frame: bytes) -> bool:
        return verify_adler32(frame)


class AuthSha1V2(AuthSha1):
    """auth_sha1_v2: longer padding and a salted key check."""

    _salt = b"auth_sha1_v2"

    def _pack_data(self, chunk: bytes) -> bytes:
        rand_len = _rand_len_v2(len(chunk))
        size = rand_len + len(chunk) + 6
        return with_adler32(size.to_bytes(2, "big") + _padding(rand_len, True) + chunk)

    def _pack_auth_data(self, chunk: bytes) -> bytes:
        rand_len = _rand_len_v2(len(chunk))
        size = rand_len + 6 + len(chunk) + 12 + HMAC_SHA1_LEN
        glob = self.global_data
        conn_id = glob.next_connection_id()
        body = (
            crc32_le(self._salt + bytes(self.server.key))
            + size.to_bytes(2, "big")
            + _padding(rand_len, True)
            + glob.local_client_id[:8]
            + conn_id.to_bytes(4, "little")
            + chunk
        )
        return body + sha1_hmac(self.server.hmac_key, body)[:HMAC_SHA1_LEN]

    def _payload_start(self, frame: bytes) -> int:
        if frame[2] < 255:
            return frame[2] + 2
        return int.from_bytes(frame[3:5], "big") + 2


class AuthSha1V4(AuthSha1V2):
    """auth_sha1_v4: the length field of every frame carries its own CRC."""

    _salt = b"auth_sha1_v4"
    _frame_prefix = 4

    def _pack_data(self, chunk: bytes) -> bytes:
        rand_len = _rand_len_v2(len(chunk))
        size = (rand_len + len(chunk) + 8).to_bytes(2, "big")
        check = (crc32(size) & 0xFFFF).to_bytes(2, "little")
        return with_adler32(size + check + _padding(rand_len, True) + chunk)

    def _pack_auth_data(self, chunk: bytes) -> bytes:
        rand_len = _rand_len_v2(len(chunk))
        size = (rand_len + 6 + len(chunk) + 12 + HMAC_SHA1_LEN).to_bytes(2, "big")
        glob = self.global_data
        conn_id = glob.next_connection_id()
        body = (
            size
            + crc32_le(size + self._salt + bytes(self.server.key))
            + _padding(rand_len, True)
            + _timestamp()
            + glob.local_client_id[:4]
            + conn_id.to_bytes(4, "little")
            + chunk
        )
        return body + sha1_hmac(self.server.hmac_key, body)[:HMAC_SHA1_LEN]

    def _check_prefix(self, buffer: bytearray) -> None:
        expected = crc32(bytes(buffer[:2])) & 0xFFFF
        if int.from_bytes(buffer[2:4], "little") != expected:
            raise self._fail("frame length check mismatch")

    def _payload_start(self, frame: bytes) -> int:
        if frame[4] < 255:
            return frame[4] + 4
        return int.from_bytes(frame[5:7], "big") + 4