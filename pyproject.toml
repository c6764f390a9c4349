[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ssrserver"
version = "0.1.0"
description = "Stream ciphers, checksums, caching, HTTP Host parsing and auth-protocol framing for a ShadowsocksR-style proxy"
requires-python = ">=3.10"
keywords = ["proxy", "shadowsocks", "stream-cipher", "checksum", "protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ssrserver"]

[tool.pytest.ini_options]
addopts = "-ra"
