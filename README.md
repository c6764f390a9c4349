# ssrserver

Building blocks for a ShadowsocksR-style proxy: stream ciphers keyed by a
password, checksums for packet framing, a small bounded cache, extraction of
the `Host` header from an HTTP request, and the client side of the
`auth_simple`, `auth_sha1*` and `auth_aes128_*` framing protocols.

## Modules

- `ssrserver.checksums`: `crc32`, `crc32_le` (CRC32 as four little-endian
  bytes), `with_crc32` (appends a trailer so the CRC32 of the whole packet is
  `0xFFFFFFFF`), `adler32`, `with_adler32` and `verify_adler32`.
- `ssrserver.base64codec`: `encode`, `decode`, `encoded_size`, `decoded_size`.
  `decode` stops at the first `=` and raises `Base64Error` on characters
  outside the standard alphabet.
- `ssrserver.cache`: `Cache(capacity, on_evict=None)`, a key/value store kept
  in order of last use. `lookup` and `in` refresh an entry; an insert that
  brings the count up to `capacity` drops the oldest entry; `clear(age)`
  removes entries unused for more than `age` seconds; `purge(keep_data)`
  empties it. `on_evict(key, value)` is called for entries with a value
  other than `None` as they leave.
- `ssrserver.ciphers`: the `Method` enumeration (`table`, `rc4`, `rc4-md5`,
  `rc4-md5-6`, AES CFB/CTR, Blowfish, Camellia, CAST5, DES, IDEA, RC2, SEED,
  `salsa20`, `chacha20`, `chacha20-ietf`), `method_from_name` (unknown names
  fall back to `rc4-md5`), `key_size`, `iv_size`, `bytes_to_key`,
  `bytes_to_key_with_size`, `md5_hash`, `sha1_hash`, `md5_hmac`, `sha1_hmac`,
  `aes_128_cbc`, `rand_bytes`, `make_table`, `TableCipher` and
  `StreamCipher(method, key, iv, encrypt)`.
- `ssrserver.streamcrypto`: `Encryptor(password, method=None)` with
  `new_context`, `encrypt`/`decrypt` for streams (the first piece carries the
  IV; a repeated IV is rejected when decrypting), `encrypt_all`/`decrypt_all`
  for whole datagrams, and one-time authentication (`onetimeauth`,
  `verify_onetimeauth`). Failures raise `CryptoError`. With no method the
  table cipher is used.
- `ssrserver.httphost`: `parse_http_host` returns the host of the `Host`
  header without its port; `get_header(name, data)` returns any header's
  value. `IncompleteRequestError` and `NoHostHeaderError` (both
  `HttpParseError`) report a request cut short or one without the header.
- `ssrserver.auth`: `ServerInfo`, `AuthGlobal` and the protocol classes
  `AuthSimple`, `AuthSha1`, `AuthSha1V2`, `AuthSha1V4`, each with
  `client_pre_encrypt` (frames outgoing data, sending the identity header on
  first use) and `client_post_decrypt` (returns the payload of every complete
  received frame). Bad frames raise `ProtocolError`.
- `ssrserver.authaes128`: `AuthAes128Md5` and `AuthAes128Sha1`, which add
  `client_udp_pre_encrypt` and `client_udp_post_decrypt` for datagrams. A
  `ServerInfo.param` of the form `"uid:key"` selects the user id and key.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Examples

Encrypting a stream:

```python
from ssrserver.streamcrypto import Encryptor

password = "password"
enc = Encryptor(password, "aes-256-cfb")

sender = enc.new_context(encrypt=True)
receiver = enc.new_context(encrypt=False)

wire = enc.encrypt(b"hello", sender)
assert enc.decrypt(wire, receiver) == b"hello"
```

Finding the host named in an HTTP request:

```python
from ssrserver.httphost import parse_http_host

host = parse_http_host(b"GET / HTTP/1.1\r\nHost: example.com:8080\r\n\r\n")
assert host == "example.com"
```

Checksummed packets:

```python
from ssrserver.checksums import verify_adler32, with_adler32

packet = with_adler32(b"payload")
assert verify_adler32(packet)
```

## What this package does not do

It provides no command-line program and no network server: it does not
accept or open connections, relay traffic, or read configuration files. It
has no access-control lists or firewall handling, and no HTTP obfuscation
layer; the auth protocol classes implement the client side of the framing
only.