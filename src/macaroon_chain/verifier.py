"""Macaroon verification.

Verification re-derives a macaroon's signature from the root key, walking
its caveats in order:

- each first-party caveat is passed to the caller's ``check`` function;
- each third-party caveat is matched with a discharge macaroon, whose own
  chain is recomputed recursively from the key recovered out of the
  caveat's verification id.

Every macaroon in the tree (primary and discharges) must end with a stored
signature equal to the recomputed one bound to the primary signature.

Discharge usage is tracked in a single :class:`DischargeUsage` ledger shared
by the whole recursion, so a discharge consumed under one caveat is seen as
consumed by every other branch. After the walk each discharge must have been
used exactly once.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Optional

from macaroon_chain.binding import bind_signature
from macaroon_chain.caveat import ThirdPartyCaveat
from macaroon_chain.crypto.cipher import DEFAULT_CIPHER, CaveatCipher
from macaroon_chain.crypto.keys import (
    derive_key,
    keyed_hash,
    keyed_hash_pair,
    signatures_equal,
    to_bytes,
)
from macaroon_chain.errors import (
    DecryptionError,
    DischargeNotFoundError,
    DischargeReusedError,
    PredicateRejectedError,
    SignatureMismatchError,
    UnusedDischargeError,
    VerificationError,
)

if TYPE_CHECKING:
    from macaroon_chain.macaroon import Macaroon

logger = logging.getLogger(__name__)

CheckFunction = Callable[[str], Optional[str]]
"""First-party predicate: returns ``None`` when satisfied, else a reason."""


class DischargeUsage:
    """Per-discharge usage counters shared across one verification.

    Parameters
    ----------
    discharges:
        The discharge macaroons supplied to the verification, in order.
    """

    def __init__(self, discharges: Iterable["Macaroon"]) -> None:
        self._discharges = list(discharges)
        self._counts = [0] * len(self._discharges)

    def __len__(self) -> int:
        return len(self._discharges)

    def claim(self, caveat_id: str) -> "Macaroon":
        """Mark the first discharge identified by *caveat_id* as used.

        Raises
        ------
        DischargeNotFoundError
            If no discharge carries *caveat_id* as its identifier.
        DischargeReusedError
            If the matching discharge has already been used.
        """
        for index, discharge in enumerate(self._discharges):
            if discharge.identifier == caveat_id:
                break
        else:
            raise DischargeNotFoundError(caveat_id)
        if self._counts[index] != 0:
            raise DischargeReusedError(caveat_id)
        self._counts[index] += 1
        return discharge

    def check_all_used(self) -> None:
        """Require that every discharge was used exactly once."""
        for discharge, count in zip(self._discharges, self._counts):
            if count == 0:
                raise UnusedDischargeError(discharge.identifier)
            if count != 1:
                raise DischargeReusedError(discharge.identifier)


def verify(
    macaroon: "Macaroon",
    root_key: bytes | str,
    check: CheckFunction,
    discharges: Iterable["Macaroon"] = (),
    *,
    cipher: Optional[CaveatCipher] = None,
) -> None:
    """Verify *macaroon* against *root_key* and the supplied discharges.

    Parameters
    ----------
    macaroon:
        The primary macaroon.
    root_key:
        Root key the primary macaroon was minted with.
    check:
        Called with each first-party caveat id, in the primary and in every
        discharge. Returns ``None`` when satisfied or a reason string.
    discharges:
        Discharge macaroons, each already bound to the primary.
    cipher:
        Cipher used for verification ids; must match the one used when the
        third-party caveats were added.

    Raises
    ------
    PredicateRejectedError
        When *check* rejects a first-party caveat.
    DischargeNotFoundError
        When a third-party caveat has no matching discharge.
    DischargeReusedError
        When a discharge would be used twice.
    UnusedDischargeError
        When a discharge is never used.
    SignatureMismatchError
        When any recomputed signature differs from the stored one.
    """
    key = derive_key(to_bytes(root_key, "root key"))
    usage = DischargeUsage(discharges)
    _recompute(
        macaroon.signature,
        key,
        macaroon,
        check,
        usage,
        cipher or DEFAULT_CIPHER,
    )
    usage.check_all_used()
    logger.debug(
        "Verified macaroon %r with %d discharge(s)", macaroon.identifier, len(usage)
    )


def _recompute(
    primary_signature: bytes,
    key: bytes,
    macaroon: "Macaroon",
    check: CheckFunction,
    usage: DischargeUsage,
    cipher: CaveatCipher,
) -> None:
    chain = keyed_hash(key, macaroon.identifier.encode("utf-8"))
    for caveat in macaroon.caveats:
        caveat_id = caveat.identifier.encode("utf-8")
        if isinstance(caveat, ThirdPartyCaveat):
            discharge = usage.claim(caveat.identifier)
            try:
                child_key = cipher.decrypt(chain, caveat.verification_id)
            except DecryptionError:
                raise DecryptionError(macaroon.identifier) from None
            _recompute(primary_signature, child_key, discharge, check, usage, cipher)
            chain = keyed_hash_pair(chain, caveat.verification_id, caveat_id)
        else:
            _check_first_party(check, caveat.identifier)
            chain = keyed_hash(chain, caveat_id)

    if not signatures_equal(bind_signature(primary_signature, chain), macaroon.signature):
        raise SignatureMismatchError(macaroon.identifier)


def _check_first_party(check: CheckFunction, caveat_id: str) -> None:
    try:
        reason = check(caveat_id)
    except VerificationError:
        raise
    except Exception as exc:
        raise PredicateRejectedError(caveat_id, str(exc) or type(exc).__name__) from exc
    if reason:
        raise PredicateRejectedError(caveat_id, str(reason))


class Verifier:
    """Reusable verifier bound to one root key and first-party check.

    Parameters
    ----------
    root_key:
        Root key shared by the macaroons this verifier accepts.
    check:
        First-party predicate; see :class:`~macaroon_chain.checkers.FirstPartyChecker`.
    cipher:
        Cipher for verification ids. Defaults to ChaCha20-Poly1305.

    Examples
    --------
    ::

        verifier = Verifier(b"root-key", FirstPartyChecker().satisfy_exact("op = read"))
        verifier.verify(macaroon, discharges)
    """

    def __init__(
        self,
        root_key: bytes | str,
        check: CheckFunction,
        cipher: Optional[CaveatCipher] = None,
    ) -> None:
        self._root_key = to_bytes(root_key, "root key")
        self._check = check
        self._cipher = cipher

    def verify(self, macaroon: "Macaroon", discharges: Iterable["Macaroon"] = ()) -> None:
        """Verify *macaroon*; raises :class:`VerificationError` on failure."""
        verify(macaroon, self._root_key, self._check, discharges, cipher=self._cipher)

    def is_valid(self, macaroon: "Macaroon", discharges: Iterable["Macaroon"] = ()) -> bool:
        """Return True when *macaroon* verifies, logging the reason otherwise."""
        try:
            self.verify(macaroon, discharges)
        except VerificationError as exc:
            logger.warning("Macaroon %r rejected: %s", macaroon.identifier, exc)
            return False
        return True
