"""Binding of discharge signatures to a primary macaroon.

A discharge macaroon is only accepted alongside the primary macaroon it was
bound to. Binding hashes the primary signature together with the
discharge's own signature under an all-zero key, so a stolen discharge
cannot be replayed with a different primary.

The primary macaroon goes through the same check during verification; its
signature equals the primary signature, which is the identity case.
"""
from __future__ import annotations

from macaroon_chain.crypto.keys import KEY_SIZE, keyed_hash_pair

_ZERO_KEY: bytes = bytes(KEY_SIZE)


def bind_signature(primary_signature: bytes, candidate_signature: bytes) -> bytes:
    """Return *candidate_signature* bound to *primary_signature*.

    Parameters
    ----------
    primary_signature:
        Signature of the primary (authorizing) macaroon.
    candidate_signature:
        Signature of the discharge macaroon being bound.

    Returns
    -------
    bytes
        *candidate_signature* unchanged when it equals the primary
        signature, otherwise the 32-byte bound signature.
    """
    if candidate_signature == primary_signature:
        return candidate_signature
    return keyed_hash_pair(_ZERO_KEY, primary_signature, candidate_signature)
