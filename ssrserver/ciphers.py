"""Cipher catalogue, key derivation, digests and stream ciphers."""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import os
from typing import Callable, Optional, Union

from Crypto.Cipher import AES as _PyAES
from Crypto.Cipher import ARC2, ARC4, CAST, DES, Blowfish, ChaCha20, Salsa20
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

try:
    from cryptography.hazmat.decrepit.ciphers import algorithms as _legacy_algorithms
except ImportError:  # older releases keep the legacy ciphers in the main module
    _legacy_algorithms = algorithms

__all__ = [
    "Method",
    "TableCipher",
    "StreamCipher",
    "method_from_name",
    "key_size",
    "iv_size",
    "make_table",
    "bytes_to_key",
    "bytes_to_key_with_size",
    "md5_hmac",
    "sha1_hmac",
    "md5_hash",
    "sha1_hash",
    "aes_128_cbc",
    "rand_bytes",
]

log = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]
Password = Union[str, bytes, bytearray]


class Method(enum.IntEnum):
    """Supported encryption methods, numbered as on the wire configuration."""

    TABLE = 0
    RC4 = 1
    RC4_MD5_6 = 2
    RC4_MD5 = 3
    AES_128_CFB = 4
    AES_192_CFB = 5
    AES_256_CFB = 6
    AES_128_CTR = 7
    AES_192_CTR = 8
    AES_256_CTR = 9
    BF_CFB = 10
    CAMELLIA_128_CFB = 11
    CAMELLIA_192_CFB = 12
    CAMELLIA_256_CFB = 13
    CAST5_CFB = 14
    DES_CFB = 15
    IDEA_CFB = 16
    RC2_CFB = 17
    SEED_CFB = 18
    SALSA20 = 19
    CHACHA20 = 20
    CHACHA20IETF = 21

    @property
    def cipher_name(self) -> str:
        """The configuration name of this method."""
        return _CIPHER_NAMES[self]


_CIPHER_NAMES = {
    Method.TABLE: "table",
    Method.RC4: "rc4",
    Method.RC4_MD5_6: "rc4-md5-6",
    Method.RC4_MD5: "rc4-md5",
    Method.AES_128_CFB: "aes-128-cfb",
    Method.AES_192_CFB: "aes-192-cfb",
    Method.AES_256_CFB: "aes-256-cfb",
    Method.AES_128_CTR: "aes-128-ctr",
    Method.AES_192_CTR: "aes-192-ctr",
    Method.AES_256_CTR: "aes-256-ctr",
    Method.BF_CFB: "bf-cfb",
    Method.CAMELLIA_128_CFB: "camellia-128-cfb",
    Method.CAMELLIA_192_CFB: "camellia-192-cfb",
    Method.CAMELLIA_256_CFB: "camellia-256-cfb",
    Method.CAST5_CFB: "cast5-cfb",
    Method.DES_CFB: "des-cfb",
    Method.IDEA_CFB: "idea-cfb",
    Method.RC2_CFB: "rc2-cfb",
    Method.SEED_CFB: "seed-cfb",
    Method.SALSA20: "salsa20",
    Method.CHACHA20: "chacha20",
    Method.CHACHA20IETF: "chacha20-ietf",
}

_BY_NAME = {name: method for method, name in _CIPHER_NAMES.items()}

# (key size, iv size) in bytes
_SIZES = {
    Method.TABLE: (0, 0),
    Method.RC4: (16, 0),
    Method.RC4_MD5_6: (16, 6),
    Method.RC4_MD5: (16, 16),
    Method.AES_128_CFB: (16, 16),
    Method.AES_192_CFB: (24, 16),
    Method.AES_256_CFB: (32, 16),
    Method.AES_128_CTR: (16, 16),
    Method.AES_192_CTR: (24, 16),
    Method.AES_256_CTR: (32, 16),
    Method.BF_CFB: (16, 8),
    Method.CAMELLIA_128_CFB: (16, 16),
    Method.CAMELLIA_192_CFB: (24, 16),
    Method.CAMELLIA_256_CFB: (32, 16),
    Method.CAST5_CFB: (16, 8),
    Method.DES_CFB: (8, 8),
    Method.IDEA_CFB: (16, 8),
    Method.RC2_CFB: (16, 8),
    Method.SEED_CFB: (16, 16),
    Method.SALSA20: (32, 8),
    Method.CHACHA20: (32, 8),
    Method.CHACHA20IETF: (32, 12),
}


def _as_bytes(value: Union[Password, memoryview]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def method_from_name(name: Optional[str]) -> Method:
    """Resolve a cipher name; ``None`` means the table cipher.

    Unknown names fall back to rc4-md5, as the server does.
    """
    if name is None:
        return Method.TABLE
    method = _BY_NAME.get(name)
    if method is None:
        log.error("Invalid cipher name: %s, use rc4-md5 instead", name)
        return Method.RC4_MD5
    return method


def key_size(method: int) -> int:
    """Key length in bytes used by ``method``."""
    return _SIZES[Method(method)][0]


def iv_size(method: int) -> int:
    """IV length in bytes used by ``method``."""
    return _SIZES[Method(method)][1]


def md5_hash(msg: BytesLike) -> bytes:
    """MD5 digest of ``msg``."""
    return hashlib.md5(bytes(msg)).digest()


def sha1_hash(msg: BytesLike) -> bytes:
    """SHA-1 digest of ``msg``."""
    return hashlib.sha1(bytes(msg)).digest()


def md5_hmac(key: BytesLike, msg: BytesLike) -> bytes:
    """HMAC-MD5 of ``msg`` under ``key``."""
    return hmac.new(bytes(key), bytes(msg), hashlib.md5).digest()


def sha1_hmac(key: BytesLike, msg: BytesLike) -> bytes:
    """HMAC-SHA1 of ``msg`` under ``key``."""
    return hmac.new(bytes(key), bytes(msg), hashlib.sha1).digest()


def bytes_to_key_with_size(password: Password, size: int) -> bytes:
    """Derive ``size`` bytes from ``password`` by chained MD5 rounds."""
    if size < 0:
        raise ValueError("size must not be negative")
    secret = _as_bytes(password)
    block = md5_hash(secret)
    out = bytearray(block)
    while len(out) < size:
        block = md5_hash(block + secret)
        out += block
    return bytes(out[:size])


def bytes_to_key(password: Password, key_len: int) -> bytes:
    """Derive a ``key_len``-byte key from ``password`` (EVP_BytesToKey with MD5)."""
    if key_len < 0:
        raise ValueError("key_len must not be negative")
    secret = _as_bytes(password)
    out = bytearray()
    previous = b""
    while len(out) < key_len:
        previous = md5_hash(previous + secret)
        out += previous
    return bytes(out[:key_len])


def aes_128_cbc(block: BytesLike, key: BytesLike) -> bytes:
    """Encrypt one 16-byte block with AES-128-CBC and a zero IV."""
    block, key = bytes(block), bytes(key)
    if len(block) != 16:
        raise ValueError("block must be 16 bytes")
    if len(key) != 16:
        raise ValueError("key must be 16 bytes")
    return _PyAES.new(key, _PyAES.MODE_CBC, iv=bytes(16)).encrypt(block)


def rand_bytes(length: int) -> bytes:
    """Return ``length`` cryptographically random bytes."""
    return os.urandom(length)


def make_table(password: Password) -> tuple[bytes, bytes]:
    """Build the substitution tables of the table cipher.

    Returns ``(encrypt_table, decrypt_table)``, each a permutation of 0..255.
    """
    digest = md5_hash(_as_bytes(password))
    key = int.from_bytes(digest[:8], "little")
    table = list(range(256))
    for salt in range(1, 1024):
        # A stable sort by key matches the stable merge sort of the server.
        table.sort(key=lambda x, s=salt: key % (x + s))
    encrypt_table = bytes(table)
    decrypt = bytearray(256)
    for index, value in enumerate(encrypt_table):
        decrypt[value] = index
    return encrypt_table, bytes(decrypt)


class TableCipher:
    """Byte-substitution cipher keyed by a password."""

    def __init__(self, password: Password) -> None:
        self.encrypt_table, self.decrypt_table = make_table(password)

    def encrypt(self, data: BytesLike) -> bytes:
        return bytes(data).translate(self.encrypt_table)

    def decrypt(self, data: BytesLike) -> bytes:
        return bytes(data).translate(self.decrypt_table)


class _Cfb:
    """Full-block CFB over a block encryption function, usable on any length."""

    def __init__(self, encrypt_block: Callable[[bytes], bytes], iv: bytes, encrypt: bool) -> None:
        self._encrypt_block = encrypt_block
        self._register = bytearray(iv)
        self._keystream = b""
        self._pos = 0
        self._encrypt = encrypt

    def update(self, data: bytes) -> bytes:
        out = bytearray()
        size = len(self._register)
        for byte in data:
            if self._pos == 0:
                self._keystream = self._encrypt_block(bytes(self._register))
            result = byte ^ self._keystream[self._pos]
            self._register[self._pos] = result if self._encrypt else byte
            out.append(result)
            self._pos = (self._pos + 1) % size
        return bytes(out)


_CFB_ALGORITHMS = {
    Method.AES_128_CFB: algorithms.AES,
    Method.AES_192_CFB: algorithms.AES,
    Method.AES_256_CFB: algorithms.AES,
    Method.CAMELLIA_128_CFB: algorithms.Camellia,
    Method.CAMELLIA_192_CFB: algorithms.Camellia,
    Method.CAMELLIA_256_CFB: algorithms.Camellia,
}

_CTR_METHODS = {Method.AES_128_CTR, Method.AES_192_CTR, Method.AES_256_CTR}


class StreamCipher:
    """An encrypting or decrypting stream for one non-table method."""

    def __init__(self, method: int, key: BytesLike, iv: BytesLike, encrypt: bool = True) -> None:
        method = Method(method)
        if method == Method.TABLE:
            raise ValueError("the table method has no stream cipher")
        key, iv = bytes(key), bytes(iv)
        want_key, want_iv = _SIZES[method]
        if len(key) != want_key:
            raise ValueError(f"{method.cipher_name} needs a {want_key}-byte key, got {len(key)}")
        if len(iv) != want_iv:
            raise ValueError(f"{method.cipher_name} needs a {want_iv}-byte iv, got {len(iv)}")
        self.method = method
        self.encrypting = encrypt
        self._update = self._build(method, key, iv, encrypt)

    @staticmethod
    def _build(method: Method, key: bytes, iv: bytes, encrypt: bool) -> Callable[[bytes], bytes]:
        if method == Method.RC4:
            return ARC4.new(key).encrypt
        if method in (Method.RC4_MD5, Method.RC4_MD5_6):
            return ARC4.new(md5_hash(key[:16] + iv)).encrypt
        if method == Method.SALSA20:
            return Salsa20.new(key=key, nonce=iv).encrypt
        if method in (Method.CHACHA20, Method.CHACHA20IETF):
            return ChaCha20.new(key=key, nonce=iv).encrypt

        algorithm = None
        mode = modes.CFB(iv)
        if method in _CFB_ALGORITHMS:
            algorithm = _CFB_ALGORITHMS[method](key)
        elif method in _CTR_METHODS:
            algorithm = algorithms.AES(key)
            mode = modes.CTR(iv)
        elif method == Method.SEED_CFB:
            algorithm = _legacy_algorithms.SEED(key)
        elif method == Method.IDEA_CFB:
            algorithm = _legacy_algorithms.IDEA(key)
        if algorithm is not None:
            cipher = Cipher(algorithm, mode)
            context = cipher.encryptor() if encrypt else cipher.decryptor()
            return context.update

        if method == Method.BF_CFB:
            block = Blowfish.new(key, Blowfish.MODE_ECB)
        elif method == Method.CAST5_CFB:
            block = CAST.new(key, CAST.MODE_ECB)
        elif method == Method.DES_CFB:
            block = DES.new(key, DES.MODE_ECB)
        elif method == Method.RC2_CFB:
            block = ARC2.new(key, ARC2.MODE_ECB, effective_keylen=128)
        else:
            raise ValueError(f"unsupported method {method.cipher_name}")
        return _Cfb(block.encrypt, iv, encrypt).update

    def update(self, data: BytesLike) -> bytes:
        """Process the next piece of the stream."""
        return self._update(bytes(data))