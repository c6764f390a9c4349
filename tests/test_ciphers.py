import hashlib

import pytest

from ssrserver.ciphers import (
    Method,
    StreamCipher,
    TableCipher,
    aes_128_cbc,
    bytes_to_key,
    bytes_to_key_with_size,
    iv_size,
    key_size,
    make_table,
    md5_hash,
    md5_hmac,
    method_from_name,
    rand_bytes,
    sha1_hash,
    sha1_hmac,
)

STREAM_METHODS = [
    m for m in Method if m not in (Method.TABLE, Method.IDEA_CFB, Method.SEED_CFB)
]


def _cipher(method, encrypt, key_byte=7, iv_byte=3):
    key = bytes([key_byte]) * key_size(method)
    iv = bytes([iv_byte]) * iv_size(method)
    return StreamCipher(method, key, iv, encrypt)


@pytest.mark.parametrize("method", list(Method))
def test_method_name_round_trip(method):
    assert method_from_name(method.cipher_name) is method


def test_method_from_name_defaults():
    assert method_from_name(None) is Method.TABLE
    assert method_from_name("no-such-cipher") is Method.RC4_MD5
    assert method_from_name("aes-256-cfb") is Method.AES_256_CFB


def test_sizes_from_catalogue():
    assert key_size(Method.AES_256_CFB) == 32
    assert key_size(Method.DES_CFB) == 8
    assert iv_size(Method.RC4_MD5_6) == 6
    assert iv_size(Method.CHACHA20IETF) == 12
    assert iv_size(Method.RC4) == 0


def test_sizes_reject_unknown_method():
    with pytest.raises(ValueError):
        key_size(99)


def test_make_table_is_a_permutation_with_inverse():
    enc, dec = make_table("password")
    assert sorted(enc) == list(range(256))
    assert all(dec[enc[i]] == i for i in range(256))


def test_make_table_is_deterministic_and_password_dependent():
    first = make_table("password")
    assert make_table("password") == first
    other = make_table("secret")
    assert sorted(other[0]) == list(range(256))
    assert other[0] != first[0]


def test_table_cipher_round_trip():
    cipher = TableCipher("password")
    data = bytes(range(256)) + b"hello"
    encrypted = cipher.encrypt(data)
    assert len(encrypted) == len(data)
    assert cipher.decrypt(encrypted) == data


def test_bytes_to_key_first_block_is_md5():
    assert bytes_to_key("password", 16) == hashlib.md5(b"password").digest()


def test_bytes_to_key_prefix_and_length():
    long_key = bytes_to_key("password", 32)
    assert len(long_key) == 32
    assert long_key[:16] == bytes_to_key("password", 16)
    assert bytes_to_key("password", 24) == long_key[:24]


@pytest.mark.parametrize("size", [16, 24, 32, 40])
def test_bytes_to_key_with_size_agrees(size):
    assert bytes_to_key_with_size(b"password", size) == bytes_to_key(b"password", size)


def test_hmac_vectors():
    assert md5_hmac(b"Jefe", b"what do ya want for nothing?").hex() == "750c783e6ab0b503eaa86e310a5db738"
    assert (
        sha1_hmac(b"Jefe", b"what do ya want for nothing?").hex()
        == "effcdf6ae5eb2fa2d27416d5f184df9c259a7c79"
    )


def test_hash_functions_match_hashlib():
    assert md5_hash(b"abc") == hashlib.md5(b"abc").digest()
    assert sha1_hash(b"abc") == hashlib.sha1(b"abc").digest()
    assert len(sha1_hash(b"")) == 20


def test_aes_128_cbc_single_block_vector():
    key = bytes(range(16))
    block = bytes.fromhex("00112233445566778899aabbccddeeff")
    assert aes_128_cbc(block, key).hex() == "69c4e0d86a7b0430d8cdb78070b4c55a"


def test_aes_128_cbc_rejects_bad_length():
    with pytest.raises(ValueError):
        aes_128_cbc(b"short", bytes(16))


def test_rand_bytes_length_and_variation():
    a, b = rand_bytes(32), rand_bytes(32)
    assert len(a) == 32
    assert len(b) == 32
    assert a != b


def test_aes_cfb_vector():
    key = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
    iv = bytes(range(16))
    plain = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
    cipher = StreamCipher(Method.AES_128_CFB, key, iv, True)
    assert cipher.update(plain).hex() == "3b3fd92eb72dad20333449f8e83cfb4a"


def test_aes_ctr_vector():
    key = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
    iv = bytes(range(0xF0, 0x100))
    plain = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
    cipher = StreamCipher(Method.AES_128_CTR, key, iv, True)
    assert cipher.update(plain).hex() == "874d6191b620e3261bef6864990db6ce"


@pytest.mark.parametrize("method", STREAM_METHODS)
def test_stream_round_trip(method):
    data = bytes(range(256)) * 3 + b"tail"
    encrypted = _cipher(method, True).update(data)
    assert len(encrypted) == len(data)
    assert encrypted != data
    assert _cipher(method, False).update(encrypted) == data


@pytest.mark.parametrize("method", STREAM_METHODS)
def test_stream_chunking_is_transparent(method):
    data = bytes(range(200)) * 2
    whole = _cipher(method, True).update(data)
    enc = _cipher(method, True)
    pieces = b"".join(enc.update(data[i : i + 13]) for i in range(0, len(data), 13))
    assert pieces == whole
    dec = _cipher(method, False)
    back = b"".join(dec.update(whole[i : i + 7]) for i in range(0, len(whole), 7))
    assert back == data


def test_rc4_md5_uses_md5_of_key_and_iv():
    key = bytes([9]) * 16
    iv = bytes([4]) * 16
    data = b"some payload"
    via_md5 = StreamCipher(Method.RC4_MD5, key, iv).update(data)
    direct = StreamCipher(Method.RC4, hashlib.md5(key + iv).digest(), b"").update(data)
    assert via_md5 == direct


def test_iv_changes_output():
    data = b"x" * 64
    a = _cipher(Method.CHACHA20, True, iv_byte=1).update(data)
    b = _cipher(Method.CHACHA20, True, iv_byte=2).update(data)
    assert len(a) == len(b) == 64
    assert a != b


def test_stream_cipher_rejects_table():
    with pytest.raises(ValueError):
        StreamCipher(Method.TABLE, b"", b"")


def test_stream_cipher_rejects_wrong_key_length():
    with pytest.raises(ValueError):
        StreamCipher(Method.AES_256_CFB, bytes(16), bytes(16))


def test_stream_cipher_rejects_wrong_iv_length():
    with pytest.raises(ValueError):
        StreamCipher(Method.SALSA20, bytes(32), bytes(12))