"""Authenticated encryption of third-party caveat verification ids.

When a third-party caveat is added, the caveat's derived root key is
encrypted under the macaroon's *current* signature. Only a verifier that
recomputes the chain up to the same point holds that signature, so only it
can recover the key needed to check the discharge.

Two constructions are provided:

``ChaCha20Poly1305Cipher``
    The default. ChaCha20-Poly1305 (RFC 8439) from ``cryptography``, with a
    random 12-byte nonce prepended to the ciphertext.
``SecretBoxCipher``
    XSalsa20-Poly1305 (NaCl ``secretbox``), with a random 24-byte nonce
    prepended. Requires the optional ``pynacl`` dependency and interoperates
    with macaroons produced by the JavaScript ``macaroon`` library.

Any object with matching ``encrypt``/``decrypt`` methods satisfies
:class:`CaveatCipher` and may be passed wherever a cipher is accepted.
"""
from __future__ import annotations

import os
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from macaroon_chain.crypto.keys import KEY_SIZE
from macaroon_chain.errors import DecryptionError


@runtime_checkable
class CaveatCipher(Protocol):
    """Authenticated encryption contract for verification ids."""

    def encrypt(self, key: bytes, plaintext: bytes) -> bytes:
        """Encrypt *plaintext* under the 32-byte *key*."""
        ...

    def decrypt(self, key: bytes, ciphertext: bytes) -> bytes:
        """Decrypt *ciphertext* under *key*, raising DecryptionError on failure."""
        ...


class ChaCha20Poly1305Cipher:
    """ChaCha20-Poly1305 with the nonce carried as a ciphertext prefix."""

    NONCE_SIZE: int = 12

    def encrypt(self, key: bytes, plaintext: bytes) -> bytes:
        nonce = os.urandom(self.NONCE_SIZE)
        return nonce + ChaCha20Poly1305(_check_key(key)).encrypt(nonce, plaintext, None)

    def decrypt(self, key: bytes, ciphertext: bytes) -> bytes:
        if len(ciphertext) <= self.NONCE_SIZE:
            raise DecryptionError()
        nonce, body = ciphertext[: self.NONCE_SIZE], ciphertext[self.NONCE_SIZE :]
        try:
            return ChaCha20Poly1305(_check_key(key)).decrypt(nonce, body, None)
        except InvalidTag as exc:
            raise DecryptionError() from exc

    def __repr__(self) -> str:
        return "ChaCha20Poly1305Cipher()"


class SecretBoxCipher:
    """NaCl secretbox (XSalsa20-Poly1305) with a 24-byte nonce prefix.

    ``pynacl`` is imported when the cipher is constructed so the default
    install does not need it. Install with ``pip install macaroon-chain[nacl]``.
    """

    def __init__(self) -> None:
        from nacl import secret

        self._secret = secret

    def encrypt(self, key: bytes, plaintext: bytes) -> bytes:
        box = self._secret.SecretBox(_check_key(key))
        return bytes(box.encrypt(plaintext))

    def decrypt(self, key: bytes, ciphertext: bytes) -> bytes:
        from nacl.exceptions import CryptoError

        box = self._secret.SecretBox(_check_key(key))
        try:
            return box.decrypt(ciphertext)
        except CryptoError as exc:
            raise DecryptionError() from exc

    def __repr__(self) -> str:
        return "SecretBoxCipher()"


DEFAULT_CIPHER: CaveatCipher = ChaCha20Poly1305Cipher()


def _check_key(key: bytes) -> bytes:
    if len(key) != KEY_SIZE:
        raise DecryptionError()
    return key
