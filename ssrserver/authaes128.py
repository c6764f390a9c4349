"""Client side of the auth_aes128 family of framing protocols.

The first frame of a connection carries an AES-128 encrypted identity block
and a per-user id. Every following frame protects its length with a two-byte
HMAC and its whole content with a four-byte HMAC. Both are keyed by the user
key and the running frame number.
"""

from __future__ import annotations

import random
import re
import time
from typing import Callable, Optional, Union

from .auth import RECV_LIMIT, UNIT_SIZE, AuthGlobal, ProtocolError, ServerInfo
from .base64codec import encode as b64encode
from .ciphers import (
    aes_128_cbc,
    bytes_to_key_with_size,
    md5_hash,
    md5_hmac,
    rand_bytes,
    sha1_hash,
    sha1_hmac,
)

__all__ = ["AuthAes128", "AuthAes128Md5", "AuthAes128Sha1", "HEAD_SIZE", "MAX_FRAME"]

BytesLike = Union[bytes, bytearray, memoryview]

HEAD_SIZE = 1200
MAX_FRAME = 8192
_MASK32 = 0xFFFFFFFF
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

_rng = random.SystemRandom()


def _rand() -> int:
    return _rng.getrandbits(64)


def _le32(value: int) -> bytes:
    return (value & _MASK32).to_bytes(4, "little")


def _le16(value: int) -> bytes:
    return (value & 0xFFFF).to_bytes(2, "little")


def _leading_int(text: str) -> int:
    """Parse the leading decimal integer of ``text``; 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


class AuthAes128:
    """auth_aes128 framing; the digest is chosen by the subclasses."""

    salt: bytes = b"auth_aes128_sha1"
    _hmac: Callable[[BytesLike, BytesLike], bytes] = staticmethod(sha1_hmac)
    _hash: Callable[[BytesLike], bytes] = staticmethod(sha1_hash)

    def __init__(self, server: Optional[ServerInfo] = None,
                 global_data: Optional[AuthGlobal] = None) -> None:
        self.server = server if server is not None else ServerInfo()
        self.global_data = global_data if global_data is not None else AuthGlobal()
        self.has_sent_header = False
        self.pack_id = 1
        self.recv_id = 1
        self.user_key: Optional[bytes] = None
        self.uid = bytes(4)
        self._recv = bytearray()

    # -- identity --------------------------------------------------------

    def _ensure_user_key(self) -> bytes:
        """Derive the user id and key from ``server.param`` ("uid:key") once."""
        if self.user_key is None:
            param = self.server.param
            if param and ":" in param:
                uid_text, key_text = param.split(":", 1)
                self.uid = _le32(_leading_int(uid_text))
                self.user_key = self._hash(key_text.encode("utf-8"))
            else:
                self.uid = rand_bytes(4)
                self.user_key = bytes(self.server.key)
        return self.user_key

    # -- sending ---------------------------------------------------------

    def _pack_data(self, chunk: bytes) -> bytes:
        length = len(chunk)
        if length > 1200:
            extra = 0
        elif self.pack_id > 4:
            extra = _rand() & 0x20
        elif length > 900:
            extra = _rand() & 0x80
        else:
            extra = _rand() & 0x200
        rand_len = extra + 1
        size = _le16(rand_len + length + 8)
        key = self._ensure_user_key() + _le32(self.pack_id)
        check = self._hmac(key, size)[:2]
        if rand_len < 128:
            padding = bytes([rand_len]) + rand_bytes(rand_len - 1)
        else:
            padding = b"\xff" + _le16(rand_len) + rand_bytes(rand_len - 3)
        body = size + check + padding + chunk
        self.pack_id = (self.pack_id + 1) & _MASK32
        return body + self._hmac(key, body)[:4]

    def _pack_auth_data(self, chunk: bytes) -> bytes:
        rand_len = _rand() & (0x200 if len(chunk) > 400 else 0x400)
        data_offset = rand_len + 16 + 4 + 4 + 7
        out_size = data_offset + len(chunk) + 4
        key = bytes(self.server.iv) + bytes(self.server.key)

        glob = self.global_data
        conn_id = glob.next_connection_id()
        plain = (
            _le32(int(time.time()))
            + glob.local_client_id[:4]
            + _le32(conn_id)
            + _le16(out_size)
            + _le16(rand_len)
        )

        user_key = self._ensure_user_key()
        enc_key = bytes_to_key_with_size(b64encode(user_key).encode("ascii") + self.salt, 16)
        block = self.uid + aes_128_cbc(plain, enc_key)
        block += self._hmac(key, block)[:4]

        marker = rand_bytes(1)
        body = marker + self._hmac(key, marker)[:6] + block + rand_bytes(rand_len) + chunk
        return body + self._hmac(user_key, body)[:4]

    def client_pre_encrypt(self, data: BytesLike) -> bytes:
        """Frame outgoing ``data``; the first call also sends the identity frame."""
        data = bytes(data)
        out = bytearray()
        pos = 0
        if data and not self.has_sent_header:
            size = min(HEAD_SIZE, len(data))
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

    def client_post_decrypt(self, data: BytesLike) -> bytes:
        """Consume received bytes and return the payload of every complete frame."""
        data = bytes(data)
        if len(self._recv) + len(data) > RECV_LIMIT:
            raise ProtocolError("receive buffer overflow")
        self._recv += data
        user_key = self._ensure_user_key()
        buffer = self._recv
        out = bytearray()
        while len(buffer) > 4:
            key = user_key + _le32(self.recv_id)
            if self._hmac(key, bytes(buffer[:2]))[:2] != bytes(buffer[2:4]):
                raise self._fail("frame length check mismatch")
            length = int.from_bytes(buffer[:2], "little")
            if length >= MAX_FRAME or length < 8:
                raise self._fail(f"bad frame length {length}")
            if length > len(buffer):
                break
            frame = bytes(buffer[:length])
            if self._hmac(key, frame[:-4])[:4] != frame[-4:]:
                raise self._fail("frame checksum mismatch")
            self.recv_id = (self.recv_id + 1) & _MASK32
            if frame[4] < 255:
                start = frame[4] + 4
            else:
                start = int.from_bytes(frame[5:7], "little") + 4
            if start > length - 4:
                raise self._fail("frame padding exceeds frame")
            out += frame[start:length - 4]
            del buffer[:length]
        return bytes(out)

    # -- datagrams -------------------------------------------------------

    def client_udp_pre_encrypt(self, data: BytesLike) -> bytes:
        """Append the user id and a four-byte HMAC to an outgoing datagram."""
        user_key = self._ensure_user_key()
        body = bytes(data) + self.uid
        return body + self._hmac(user_key, body)[:4]

    def client_udp_post_decrypt(self, data: BytesLike) -> bytes:
        """Strip and check the HMAC of a received datagram; empty when it fails."""
        data = bytes(data)
        if len(data) <= 4:
            return b""
        body, tag = data[:-4], data[-4:]
        if self._hmac(bytes(self.server.key), body)[:4] != tag:
            return b""
        return body


class AuthAes128Md5(AuthAes128):
    """auth_aes128_md5: HMAC-MD5 and MD5 user keys."""

    salt = b"auth_aes128_md5"
    _hmac = staticmethod(md5_hmac)
    _hash = staticmethod(md5_hash)


class AuthAes128Sha1(AuthAes128):
    """auth_aes128_sha1: HMAC-SHA1 and SHA-1 user keys."""

    salt = b"auth_aes128_sha1"
    _hmac = staticmethod(sha1_hmac)
    _hash = staticmethod(sha1_hash)