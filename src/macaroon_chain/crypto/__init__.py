"""crypto — keyed-hash and authenticated-encryption primitives.

The signature chain only relies on the functions exported here, so swapping
the cipher (see :class:`CaveatCipher`) does not touch the chaining logic.
"""
from __future__ import annotations

from macaroon_chain.crypto.cipher import (
    DEFAULT_CIPHER,
    CaveatCipher,
    ChaCha20Poly1305Cipher,
    SecretBoxCipher,
)
from macaroon_chain.crypto.keys import (
    KEY_SIZE,
    derive_key,
    keyed_hash,
    keyed_hash_pair,
    signatures_equal,
    to_bytes,
)

__all__ = [
    "DEFAULT_CIPHER",
    "KEY_SIZE",
    "CaveatCipher",
    "ChaCha20Poly1305Cipher",
    "SecretBoxCipher",
    "derive_key",
    "keyed_hash",
    "keyed_hash_pair",
    "signatures_equal",
    "to_bytes",
]
