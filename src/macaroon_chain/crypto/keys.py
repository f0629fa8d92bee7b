"""Keyed-hash primitives for the macaroon signature chain.

All three functions are HMAC-SHA256 based and deterministic:

- :func:`derive_key` maps root key material of any length to a 32-byte key.
- :func:`keyed_hash` advances the chain by one message.
- :func:`keyed_hash_pair` advances the chain by two messages at once, used
  for third-party caveats and for binding.
"""
from __future__ import annotations

import hashlib
import hmac

from macaroon_chain.errors import InvalidArgumentError

KEY_SIZE: int = 32

_KEY_GENERATOR: bytes = b"macaroons-key-generator"


def to_bytes(value: bytes | str, name: str) -> bytes:
    """Return *value* as bytes, UTF-8 encoding strings.

    Raises
    ------
    InvalidArgumentError
        If *value* is neither ``bytes`` nor ``str``.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise InvalidArgumentError(name, f"expected bytes or str, got {type(value).__name__}")


def derive_key(root_key: bytes | str) -> bytes:
    """Derive the fixed-size HMAC key from arbitrary root key material."""
    return keyed_hash(_KEY_GENERATOR, to_bytes(root_key, "root key"))


def keyed_hash(key: bytes, data: bytes) -> bytes:
    """Compute HMAC-SHA256 of *data* under *key*."""
    return hmac.new(key, data, hashlib.sha256).digest()


def keyed_hash_pair(key: bytes, first: bytes, second: bytes) -> bytes:
    """Hash two messages together: ``H(k, H(k, first) || H(k, second))``."""
    return keyed_hash(key, keyed_hash(key, first) + keyed_hash(key, second))


def signatures_equal(left: bytes, right: bytes) -> bool:
    """Compare two signatures in constant time."""
    return hmac.compare_digest(left, right)
