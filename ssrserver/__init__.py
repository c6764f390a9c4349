"""Stream ciphers, checksums, a bounded cache, HTTP Host parsing and auth-protocol framing for a ShadowsocksR-style proxy."""

__version__ = "0.1.0"