"""Password-keyed stream encryption with one-time authentication and IV replay checks."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional, Union

from .cache import Cache
from .ciphers import (
    Method,
    StreamCipher,
    TableCipher,
    bytes_to_key,
    iv_size,
    key_size,
    md5_hmac,
    method_from_name,
    rand_bytes,
    sha1_hmac,
)

__all__ = ["CryptoError", "CipherContext", "Encryptor", "ONETIMEAUTH_FLAG", "ONETIMEAUTH_BYTES"]

ONETIMEAUTH_FLAG = 0x10
ONETIMEAUTH_BYTES = 10
_IV_CACHE_SIZE = 256

BytesLike = Union[bytes, bytearray, memoryview]


class CryptoError(Exception):
    """Raised when data cannot be decrypted or fails authentication."""


@dataclass
class CipherContext:
    """State of one direction of an encrypted stream."""

    iv: bytes
    encrypting: bool
    initialized: bool = False
    counter: int = 0
    cipher: Optional[StreamCipher] = None


class Encryptor:
    """Encrypts and decrypts data for one configured method and password."""

    def __init__(self, password: Union[str, bytes], method: Optional[str] = None) -> None:
        self.method = method_from_name(method)
        self._iv_cache = Cache(_IV_CACHE_SIZE)
        if self.method == Method.TABLE:
            self._table: Optional[TableCipher] = TableCipher(password)
            self.key = b""
            self.iv_len = 0
        else:
            self._table = None
            self.key = bytes_to_key(password, key_size(self.method))
            self.iv_len = iv_size(self.method)

    @property
    def key_len(self) -> int:
        return len(self.key)

    def _auth_key(self, iv: BytesLike) -> bytes:
        return bytes(iv)[: self.iv_len] + self.key

    def _stream(self, iv: bytes, encrypt: bool) -> StreamCipher:
        return StreamCipher(self.method, self.key, iv, encrypt)

    def new_context(self, encrypt: bool) -> CipherContext:
        """Create a stream context; encrypting contexts get a fresh random IV."""
        iv = rand_bytes(self.iv_len) if encrypt else b""
        return CipherContext(iv=iv, encrypting=encrypt)

    def md5_hmac(self, msg: BytesLike, iv: BytesLike) -> bytes:
        """HMAC-MD5 of ``msg`` keyed by the IV followed by the key."""
        return md5_hmac(self._auth_key(iv), msg)

    def sha1_hmac(self, msg: BytesLike, iv: BytesLike) -> bytes:
        """HMAC-SHA1 of ``msg`` keyed by the IV followed by the key."""
        return sha1_hmac(self._auth_key(iv), msg)

    def onetimeauth(self, data: BytesLike, iv: BytesLike) -> bytes:
        """Return ``data`` with its ten-byte one-time authentication tag appended."""
        data = bytes(data)
        return data + self.sha1_hmac(data, iv)[:ONETIMEAUTH_BYTES]

    def verify_onetimeauth(self, data: BytesLike, iv: BytesLike) -> bool:
        """Check the ten-byte tag at the end of ``data``."""
        data = bytes(data)
        if len(data) < ONETIMEAUTH_BYTES:
            return False
        body, tag = data[:-ONETIMEAUTH_BYTES], data[-ONETIMEAUTH_BYTES:]
        expected = self.sha1_hmac(body, iv)[:ONETIMEAUTH_BYTES]
        return hmac.compare_digest(expected, tag)

    def encrypt_all(self, data: BytesLike, auth: bool = False) -> bytes:
        """Encrypt a whole datagram under a fresh IV, which is prepended."""
        if self._table is not None:
            return self._table.encrypt(data)
        iv = rand_bytes(self.iv_len)
        plain = bytes(data)
        if auth:
            plain = self.onetimeauth(plain, iv)
        return iv + self._stream(iv, True).update(plain)

    def decrypt_all(self, data: BytesLike, auth: bool = False) -> bytes:
        """Decrypt a whole datagram, verifying its tag when required."""
        if self._table is not None:
            return self._table.decrypt(data)
        data = bytes(data)
        if len(data) <= self.iv_len:
            raise CryptoError("datagram shorter than its IV")
        iv = data[: self.iv_len]
        plain = self._stream(iv, False).update(data[self.iv_len :])
        if auth or plain[0] & ONETIMEAUTH_FLAG:
            if len(plain) <= ONETIMEAUTH_BYTES:
                raise CryptoError("datagram too short for its authentication tag")
            if not self.verify_onetimeauth(plain, iv):
                raise CryptoError("one-time authentication failed")
            plain = plain[:-ONETIMEAUTH_BYTES]
        return plain

    def encrypt(self, data: BytesLike, ctx: Optional[CipherContext] = None) -> bytes:
        """Encrypt the next piece of a stream; the first piece carries the IV."""
        if self._table is not None:
            return self._table.encrypt(data)
        if ctx is None:
            raise ValueError("a cipher context is required for this method")
        prefix = b""
        if not ctx.initialized:
            ctx.cipher = self._stream(ctx.iv, True)
            ctx.counter = 0
            ctx.initialized = True
            prefix = ctx.iv
        data = bytes(data)
        out = ctx.cipher.update(data)
        ctx.counter += len(data)
        return prefix + out

    def decrypt(self, data: BytesLike, ctx: Optional[CipherContext] = None) -> bytes:
        """Decrypt the next piece of a stream; the first piece must start with the IV."""
        if self._table is not None:
            return self._table.decrypt(data)
        if ctx is None:
            raise ValueError("a cipher context is required for this method")
        data = bytes(data)
        if not ctx.initialized:
            if len(data) < self.iv_len:
                raise CryptoError("stream starts with an incomplete IV")
            iv, data = data[: self.iv_len], data[self.iv_len :]
            ctx.iv = iv
            ctx.cipher = self._stream(iv, False)
            ctx.counter = 0
            ctx.initialized = True
            if self.method > Method.RC4:
                if iv in self._iv_cache:
                    raise CryptoError("repeated IV")
                self._iv_cache.insert(iv, None)
        out = ctx.cipher.update(data)
        ctx.counter += len(data)
        return out