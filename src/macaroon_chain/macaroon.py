"""Macaroon — bearer token with an append-only, chained caveat list.

The signature of a macaroon is an HMAC chain::

    sig0 = HMAC(derive_key(root_key), identifier)
    sigN = HMAC(sigN-1, caveat_id)                          # first-party
    sigN = HMAC2(sigN-1, verification_id, caveat_id)        # third-party

Anyone holding a macaroon can append caveats (further restricting it), but
nobody without the root key can remove one: each step is a one-way
function of the previous signature.

Example
-------
::

    m = Macaroon.mint(b"root-key", "user-42", "https://api.example.com")
    m.add_first_party_caveat("op = read")
    m.verify(b"root-key", FirstPartyChecker().satisfy_exact("op = read"))
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from macaroon_chain.binding import bind_signature
from macaroon_chain.caveat import Caveat, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_chain.crypto.cipher import DEFAULT_CIPHER, CaveatCipher
from macaroon_chain.crypto.keys import (
    KEY_SIZE,
    derive_key,
    keyed_hash,
    keyed_hash_pair,
    to_bytes,
)
from macaroon_chain.errors import InvalidArgumentError
from macaroon_chain.verifier import CheckFunction, verify

logger = logging.getLogger(__name__)


class Macaroon:
    """A macaroon: location, identifier, signature and ordered caveats.

    Use :meth:`mint` to create a new macaroon from a root key; the
    constructor is for rebuilding one whose signature is already known
    (for example when importing the exchange format).

    Parameters
    ----------
    location:
        Advisory location of the target service. Not authenticated.
    identifier:
        Opaque identifier seeding the signature chain.
    signature:
        Current 32-byte chain signature.
    caveats:
        Caveats in the order they were added.
    """

    def __init__(
        self,
        location: str,
        identifier: str,
        signature: bytes,
        caveats: Iterable[Caveat] = (),
    ) -> None:
        _require_str(location, "macaroon location")
        _require_str(identifier, "macaroon identifier")
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != KEY_SIZE:
            raise InvalidArgumentError("macaroon signature", f"expected {KEY_SIZE} bytes")
        caveat_list = list(caveats)
        for caveat in caveat_list:
            if not isinstance(caveat, (FirstPartyCaveat, ThirdPartyCaveat)):
                raise InvalidArgumentError("caveat", f"unexpected type {type(caveat).__name__}")
        self._location = location
        self._identifier = identifier
        self._signature = bytes(signature)
        self._caveats: list[Caveat] = caveat_list

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def mint(cls, root_key: bytes | str, identifier: str, location: str) -> "Macaroon":
        """Create a macaroon with no caveats.

        Parameters
        ----------
        root_key:
            Secret root key. Strings are UTF-8 encoded.
        identifier:
            Macaroon identifier.
        location:
            Location hint for the target service.

        Returns
        -------
        Macaroon

        Raises
        ------
        InvalidArgumentError
            If any argument has the wrong type.
        """
        _require_str(location, "macaroon location")
        _require_str(identifier, "macaroon identifier")
        key = derive_key(to_bytes(root_key, "macaroon root key"))
        logger.debug("Minting macaroon %r for location %r", identifier, location)
        return cls(location, identifier, keyed_hash(key, identifier.encode("utf-8")))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def location(self) -> str:
        return self._location

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def signature(self) -> bytes:
        return self._signature

    @property
    def signature_hex(self) -> str:
        return self._signature.hex()

    @property
    def caveats(self) -> tuple[Caveat, ...]:
        """Snapshot of the caveats in the order they were added."""
        return tuple(self._caveats)

    def first_party_caveats(self) -> list[FirstPartyCaveat]:
        return [c for c in self._caveats if isinstance(c, FirstPartyCaveat)]

    def third_party_caveats(self) -> list[ThirdPartyCaveat]:
        return [c for c in self._caveats if isinstance(c, ThirdPartyCaveat)]

    # ------------------------------------------------------------------
    # Chain extension
    # ------------------------------------------------------------------

    def add_first_party_caveat(self, caveat_id: str) -> "Macaroon":
        """Append a caveat checked by the target service and return self."""
        _require_str(caveat_id, "caveat id")
        self._caveats.append(FirstPartyCaveat(caveat_id))
        self._signature = keyed_hash(self._signature, caveat_id.encode("utf-8"))
        logger.debug("Added first-party caveat to %r", self._identifier)
        return self

    def add_third_party_caveat(
        self,
        caveat_root_key: bytes | str,
        caveat_id: str,
        location: str,
        *,
        cipher: Optional[CaveatCipher] = None,
    ) -> "Macaroon":
        """Append a caveat that must be discharged by a third party.

        The caveat id should let the third party recover *caveat_root_key*,
        either by encrypting it to a key the third party holds or by
        referencing it in the third party's storage.

        Parameters
        ----------
        caveat_root_key:
            Root key the third party will mint the discharge macaroon with.
        caveat_id:
            Identifier of the caveat; the discharge macaroon must use it as
            its own identifier.
        location:
            Where the discharge macaroon can be obtained.
        cipher:
            Authenticated encryption for the verification id. Defaults to
            ChaCha20-Poly1305.

        Returns
        -------
        Macaroon
            ``self``, to allow chaining.
        """
        key_bytes = to_bytes(caveat_root_key, "caveat root key")
        _require_str(caveat_id, "caveat id")
        _require_str(location, "caveat location")
        verification_id = (cipher or DEFAULT_CIPHER).encrypt(self._signature, derive_key(key_bytes))
        self._caveats.append(ThirdPartyCaveat(caveat_id, verification_id, location))
        self._signature = keyed_hash_pair(
            self._signature, verification_id, caveat_id.encode("utf-8")
        )
        logger.debug("Added third-party caveat for %r to %r", location, self._identifier)
        return self

    # ------------------------------------------------------------------
    # Binding / copying
    # ------------------------------------------------------------------

    def bind(self, primary_signature: bytes) -> "Macaroon":
        """Bind this (discharge) macaroon to a primary signature and return self."""
        if not isinstance(primary_signature, (bytes, bytearray)):
            raise InvalidArgumentError(
                "primary signature", f"expected bytes, got {type(primary_signature).__name__}"
            )
        self._signature = bind_signature(bytes(primary_signature), self._signature)
        return self

    def bind_str(self, primary_signature: str) -> "Macaroon":
        """Bind against a signature given as a string (UTF-8 encoded)."""
        _require_str(primary_signature, "primary signature")
        return self.bind(primary_signature.encode("utf-8"))

    def clone(self) -> "Macaroon":
        """Return a copy whose caveat list is independent of this one."""
        return Macaroon(self._location, self._identifier, self._signature, list(self._caveats))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        root_key: bytes | str,
        check: CheckFunction,
        discharges: Iterable["Macaroon"] = (),
        *,
        cipher: Optional[CaveatCipher] = None,
    ) -> None:
        """Verify this macaroon and its discharges.

        See :func:`macaroon_chain.verifier.verify` for the algorithm.

        Raises
        ------
        VerificationError
            On the first violation found.
        """
        verify(self, root_key, check, discharges, cipher=cipher)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Serialize to the exchange object form."""
        from macaroon_chain.serialization import export_macaroon

        return export_macaroon(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Macaroon":
        """Reconstruct a macaroon from :meth:`to_dict` output."""
        from macaroon_chain.serialization import import_macaroon

        return import_macaroon(data)

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Macaroon):
            return NotImplemented
        return (
            self._location == other._location
            and self._identifier == other._identifier
            and self._signature == other._signature
            and self._caveats == other._caveats
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Macaroon(location={self._location!r}, identifier={self._identifier!r}, "
            f"caveats={len(self._caveats)})"
        )


def _require_str(value: object, name: str) -> None:
    if not isinstance(value, str):
        raise InvalidArgumentError(name, f"expected str, got {type(value).__name__}")
