import base64

import pytest

from ssrserver.base64codec import (
    Base64Error,
    decode,
    decoded_size,
    encode,
    encoded_size,
)


def test_encode_known_vectors():
    assert encode(b"foo") == "Zm9v"
    assert encode(b"f") == "Zg=="


def test_decode_known_vector():
    assert decode("Zm9vYg==") == b"foob"


def test_encode_empty():
    assert encode(b"") == ""


@pytest.mark.parametrize("length", range(0, 20))
def test_round_trip(length):
    data = bytes((i * 37 + 11) % 256 for i in range(length))
    text = encode(data)
    assert decode(text) == data
    assert len(text) == encoded_size(length)


@pytest.mark.parametrize("length", [1, 2, 3, 16, 20, 31])
def test_encode_matches_stdlib(length):
    data = bytes(range(length))
    assert encode(data) == base64.b64encode(data).decode("ascii")


def test_decode_accepts_bytes():
    data = b"binary\x00\xff"
    assert decode(encode(data).encode("ascii")) == data


def test_decode_stops_at_padding():
    text = encode(b"ab") + encode(b"xyz")
    assert decode(text) == b"ab"


def test_decode_without_padding():
    text = encode(b"hello").rstrip("=")
    assert decode(text) == b"hello"


@pytest.mark.parametrize("text", ["Zm9v!", "ab-c", "Zm 9v", "\u00e9abc"])
def test_decode_invalid_character(text):
    with pytest.raises(Base64Error):
        decode(text)


def test_base64_error_is_value_error():
    with pytest.raises(ValueError):
        decode("@@@@")


@pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5, 6, 100])
def test_sizes_consistent(length):
    data = bytes(length)
    text = encode(data)
    assert encoded_size(length) == len(text)
    assert decoded_size(len(text)) >= length
    assert decoded_size(len(text)) - length < 3