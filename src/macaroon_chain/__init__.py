"""macaroon-chain — chained-signature bearer tokens with third-party caveats.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import macaroon_chain
>>> macaroon_chain.__version__
'0.1.0'

Quick start
-----------
::

    from macaroon_chain import FirstPartyChecker, Macaroon, collect_discharges

    m = Macaroon.mint(b"root-key", "user-42", "https://api.example.com")
    m.add_first_party_caveat("op = read")
    m.add_third_party_caveat(b"caveat-key", "is-authenticated", "https://auth.example.com")

    primary, *discharges = await collect_discharges(m, acquire)
    primary.verify(b"root-key", FirstPartyChecker().satisfy_exact("op = read"), discharges)
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Tokens
# ------------------------------------------------------------------
from macaroon_chain.binding import bind_signature
from macaroon_chain.caveat import Caveat, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_chain.macaroon import Macaroon

# ------------------------------------------------------------------
# Primitives
# ------------------------------------------------------------------
from macaroon_chain.crypto import (
    CaveatCipher,
    ChaCha20Poly1305Cipher,
    SecretBoxCipher,
    derive_key,
)

# ------------------------------------------------------------------
# Verification
# ------------------------------------------------------------------
from macaroon_chain.checkers import FirstPartyChecker, allow_all, deny_all, time_before_caveat
from macaroon_chain.verifier import DischargeUsage, Verifier, verify

# ------------------------------------------------------------------
# Discharge collection
# ------------------------------------------------------------------
from macaroon_chain.collector import collect_discharges, discharge

# ------------------------------------------------------------------
# Exchange format
# ------------------------------------------------------------------
from macaroon_chain.serialization import dumps, export_macaroon, import_macaroon, loads

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from macaroon_chain.errors import (
    DecryptionError,
    DischargeAcquisitionFailedError,
    DischargeNotFoundError,
    DischargeReusedError,
    InvalidArgumentError,
    MacaroonError,
    PredicateRejectedError,
    SignatureMismatchError,
    UnusedDischargeError,
    VerificationError,
)

__all__ = [
    "__version__",
    # Tokens
    "Caveat",
    "FirstPartyCaveat",
    "Macaroon",
    "ThirdPartyCaveat",
    "bind_signature",
    # Primitives
    "CaveatCipher",
    "ChaCha20Poly1305Cipher",
    "SecretBoxCipher",
    "derive_key",
    # Verification
    "DischargeUsage",
    "FirstPartyChecker",
    "Verifier",
    "allow_all",
    "deny_all",
    "time_before_caveat",
    "verify",
    # Discharge collection
    "collect_discharges",
    "discharge",
    # Exchange format
    "dumps",
    "export_macaroon",
    "import_macaroon",
    "loads",
    # Errors
    "DecryptionError",
    "DischargeAcquisitionFailedError",
    "DischargeNotFoundError",
    "DischargeReusedError",
    "InvalidArgumentError",
    "MacaroonError",
    "PredicateRejectedError",
    "SignatureMismatchError",
    "UnusedDischargeError",
    "VerificationError",
]
