import pytest

from ssrserver.ciphers import Method, bytes_to_key, md5_hmac, sha1_hmac
from ssrserver.streamcrypto import (
    ONETIMEAUTH_BYTES,
    CryptoError,
    Encryptor,
)

password = "password"
METHODS = ["aes-256-cfb", "aes-128-ctr", "rc4-md5", "rc4", "chacha20-ietf", "salsa20", "bf-cfb"]
MESSAGE = b"hello stream, this is a longer message spanning blocks" * 3


@pytest.mark.parametrize("name", METHODS)
def test_stream_round_trip(name):
    sender = Encryptor(password, name)
    receiver = Encryptor(password, name)
    out_ctx = sender.new_context(True)
    in_ctx = receiver.new_context(False)
    cipher = sender.encrypt(MESSAGE, out_ctx)
    assert len(cipher) == sender.iv_len + len(MESSAGE)
    assert cipher[: sender.iv_len] == out_ctx.iv
    assert receiver.decrypt(cipher, in_ctx) == MESSAGE


@pytest.mark.parametrize("name", METHODS)
def test_stream_chunks_match_single_shot(name):
    enc = Encryptor(password, name)
    out_ctx = enc.new_context(True)
    pieces = [MESSAGE[:7], MESSAGE[7:70], MESSAGE[70:]]
    stream = b"".join(enc.encrypt(p, out_ctx) for p in pieces)
    dec = Encryptor(password, name)
    in_ctx = dec.new_context(False)
    split = dec.iv_len + 3
    plain = dec.decrypt(stream[:split], in_ctx) + dec.decrypt(stream[split:], in_ctx)
    assert plain == MESSAGE
    assert in_ctx.counter == len(MESSAGE)


def test_repeated_iv_is_rejected():
    enc = Encryptor(password, "aes-256-cfb")
    cipher = enc.encrypt(b"data", enc.new_context(True))
    enc.decrypt(cipher, enc.new_context(False))
    with pytest.raises(CryptoError):
        enc.decrypt(cipher, enc.new_context(False))


def test_incomplete_iv_is_rejected():
    enc = Encryptor(password, "aes-256-cfb")
    with pytest.raises(CryptoError):
        enc.decrypt(b"short", enc.new_context(False))


@pytest.mark.parametrize("name", METHODS)
def test_datagram_round_trip(name):
    enc = Encryptor(password, name)
    packet = enc.encrypt_all(b"\x01payload", auth=False)
    assert enc.decrypt_all(packet) == b"\x01payload"


def test_datagram_with_auth_round_trip():
    enc = Encryptor(password, "aes-128-cfb")
    packet = enc.encrypt_all(b"\x01payload", auth=True)
    assert len(packet) == enc.iv_len + len(b"\x01payload") + ONETIMEAUTH_BYTES
    assert enc.decrypt_all(packet, auth=True) == b"\x01payload"


def test_datagram_tampered_fails():
    enc = Encryptor(password, "aes-128-cfb")
    packet = bytearray(enc.encrypt_all(b"\x01payload-data", auth=True))
    packet[-1] ^= 0xFF
    with pytest.raises(CryptoError):
        enc.decrypt_all(bytes(packet), auth=True)


def test_flag_byte_demands_authentication():
    enc = Encryptor(password, "aes-128-cfb")
    packet = enc.encrypt_all(b"\x10abc", auth=False)
    with pytest.raises(CryptoError):
        enc.decrypt_all(packet)


def test_datagram_too_short():
    enc = Encryptor(password, "aes-128-cfb")
    with pytest.raises(CryptoError):
        enc.decrypt_all(b"\x00" * enc.iv_len)


def test_onetimeauth_and_verify():
    enc = Encryptor(password, "aes-256-cfb")
    iv = bytes(range(16))
    tagged = enc.onetimeauth(b"message", iv)
    assert tagged[:-ONETIMEAUTH_BYTES] == b"message"
    assert tagged[-ONETIMEAUTH_BYTES:] == sha1_hmac(iv + enc.key, b"message")[:ONETIMEAUTH_BYTES]
    assert enc.verify_onetimeauth(tagged, iv) is True
    assert enc.verify_onetimeauth(tagged[:-1] + b"\x00", iv) is False
    assert enc.verify_onetimeauth(tagged, bytes(16)) is False


def test_hmacs_use_iv_and_key():
    enc = Encryptor(password, "aes-256-cfb")
    iv = bytes(16)
    assert enc.md5_hmac(b"m", iv) == md5_hmac(iv + enc.key, b"m")
    assert enc.sha1_hmac(b"m", iv) == sha1_hmac(iv + enc.key, b"m")
    assert len(enc.md5_hmac(b"m", iv)) == 16
    assert len(enc.sha1_hmac(b"m", iv)) == 20


def test_key_derivation_and_sizes():
    enc = Encryptor(password, "chacha20-ietf")
    assert enc.key == bytes_to_key(password, 32)
    assert enc.iv_len == 12
    assert enc.key_len == 32


def test_unknown_method_falls_back_to_rc4_md5():
    enc = Encryptor(password, "no-such-cipher")
    assert enc.method == Method.RC4_MD5
    assert enc.iv_len == 16


def test_table_method_round_trip():
    enc = Encryptor(password, None)
    assert enc.method == Method.TABLE
    cipher = enc.encrypt(MESSAGE)
    assert len(cipher) == len(MESSAGE)
    assert cipher != MESSAGE
    assert enc.decrypt(cipher) == MESSAGE
    assert enc.decrypt_all(enc.encrypt_all(b"abc")) == b"abc"


def test_stream_method_needs_context():
    enc = Encryptor(password, "aes-256-cfb")
    with pytest.raises(ValueError):
        enc.encrypt(b"data")


def test_wrong_password_does_not_decrypt():
    sender = Encryptor(password, "aes-256-cfb")
    receiver = Encryptor("secret", "aes-256-cfb")
    cipher = sender.encrypt(MESSAGE, sender.new_context(True))
    assert receiver.decrypt(cipher, receiver.new_context(False)) != MESSAGE