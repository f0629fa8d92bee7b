"""Exception hierarchy for macaroon minting, verification and discharge collection.

Every error raised by this package derives from :class:`MacaroonError`, so a
caller that only cares whether an operation succeeded can catch that one
class. Verification failures share the :class:`VerificationError` base.
"""
from __future__ import annotations


class MacaroonError(Exception):
    """Base class for all macaroon-related errors."""


class InvalidArgumentError(MacaroonError, ValueError):
    """Raised when an identifier, location, key or exchange object is malformed.

    Parameters
    ----------
    name:
        Human-readable name of the offending argument.
    reason:
        Why the argument was rejected.
    """

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid {name}: {reason}")


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class VerificationError(MacaroonError):
    """Base class for every failure detected while verifying a macaroon."""


class PredicateRejectedError(VerificationError):
    """Raised when the first-party check rejects a caveat."""

    def __init__(self, caveat_id: str, reason: str) -> None:
        self.caveat_id = caveat_id
        self.reason = reason
        super().__init__(f"Caveat {caveat_id!r} not satisfied: {reason}")


class DischargeNotFoundError(VerificationError):
    """Raised when no discharge macaroon matches a third-party caveat."""

    def __init__(self, caveat_id: str) -> None:
        self.caveat_id = caveat_id
        super().__init__(f"Cannot find discharge macaroon for caveat {caveat_id!r}")


class DischargeReusedError(VerificationError):
    """Raised when a discharge macaroon would be consumed more than once."""

    def __init__(self, discharge_id: str) -> None:
        self.discharge_id = discharge_id
        super().__init__(f"Discharge macaroon {discharge_id!r} was used more than once")


class UnusedDischargeError(VerificationError):
    """Raised when a supplied discharge macaroon was never consumed."""

    def __init__(self, discharge_id: str) -> None:
        self.discharge_id = discharge_id
        super().__init__(f"Discharge macaroon {discharge_id!r} was not used")


class SignatureMismatchError(VerificationError):
    """Raised when a recomputed signature differs from the stored one.

    Covers tampering, a wrong root key and caveat reordering.
    """

    def __init__(self, identifier: str, detail: str = "signature mismatch after caveat verification") -> None:
        self.identifier = identifier
        self.detail = detail
        super().__init__(f"Macaroon {identifier!r}: {detail}")


class DecryptionError(SignatureMismatchError):
    """Raised when a verification id fails authenticated decryption."""

    def __init__(self, identifier: str = "") -> None:
        super().__init__(identifier, "verification id failed authenticated decryption")


# ---------------------------------------------------------------------------
# Discharge collection
# ---------------------------------------------------------------------------


class DischargeAcquisitionFailedError(MacaroonError):
    """Raised when acquiring a discharge macaroon fails.

    Parameters
    ----------
    caveat_id:
        Identifier of the third-party caveat being discharged.
    location:
        The third party's location hint.
    cause:
        The underlying exception reported by the acquisition function.
    """

    def __init__(self, caveat_id: str, location: str, cause: BaseException) -> None:
        self.caveat_id = caveat_id
        self.location = location
        self.cause = cause
        super().__init__(
            f"Cannot acquire discharge for caveat {caveat_id!r} from {location!r}: {cause}"
        )


__all__ = [
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
