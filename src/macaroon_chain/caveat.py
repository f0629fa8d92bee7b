"""Caveat types — the restrictions carried by a macaroon.

A caveat is either first-party (a predicate the target service checks
itself) or third-party (a condition some other service must vouch for by
issuing a discharge macaroon). The two are distinct frozen dataclasses so a
third-party caveat always carries both a verification id and a location,
and a first-party caveat carries neither.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class FirstPartyCaveat:
    """A condition verified locally by the target service.

    Parameters
    ----------
    identifier:
        The predicate text, e.g. ``"account = 3735928559"``.
    """

    identifier: str

    @property
    def is_third_party(self) -> bool:
        return False


@dataclass(frozen=True)
class ThirdPartyCaveat:
    """A condition that must be discharged by a third party.

    Parameters
    ----------
    identifier:
        Opaque caveat id that lets the third party recover the caveat's
        root key (either by decrypting it or by looking it up).
    verification_id:
        The caveat root key, encrypted under the macaroon signature at the
        point the caveat was added.
    location:
        Hint for where to obtain the discharge macaroon.
    """

    identifier: str
    verification_id: bytes
    location: str

    @property
    def is_third_party(self) -> bool:
        return True


Caveat = Union[FirstPartyCaveat, ThirdPartyCaveat]

__all__ = ["Caveat", "FirstPartyCaveat", "ThirdPartyCaveat"]
