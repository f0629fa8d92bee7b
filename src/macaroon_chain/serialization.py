"""Exchange format — macaroons as plain JSON-compatible objects.

Object form::

    {
        "location": "https://api.example.com",
        "identifier": "user-42",
        "signature": "<64 lower-case hex chars>",
        "caveats": [
            {"cid": "op = read"},
            {"cid": "<opaque>", "vid": "<base64url, unpadded>", "cl": "https://auth"}
        ]
    }

``vid`` and ``cl`` appear together on third-party caveats and never on
first-party ones. Input objects are validated with pydantic; any validation
failure is reported as :class:`~macaroon_chain.errors.InvalidArgumentError`.
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional, Union, overload

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from macaroon_chain.caveat import Caveat, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_chain.errors import InvalidArgumentError
from macaroon_chain.macaroon import Macaroon


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class CaveatModel(BaseModel):
    """Exchange form of a single caveat."""

    model_config = ConfigDict(extra="forbid")

    cid: str
    vid: Optional[str] = None
    cl: Optional[str] = None

    @model_validator(mode="after")
    def _vid_and_cl_together(self) -> "CaveatModel":
        if (self.vid is None) != (self.cl is None):
            raise ValueError("caveat 'vid' and 'cl' must be both present or both absent")
        return self


class MacaroonModel(BaseModel):
    """Exchange form of a macaroon."""

    model_config = ConfigDict(extra="forbid")

    location: str
    identifier: str
    signature: str = Field(pattern=r"^[0-9a-f]{64}$")
    caveats: list[CaveatModel] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Object form
# ---------------------------------------------------------------------------


@overload
def export_macaroon(macaroon: Macaroon) -> dict[str, Any]: ...


@overload
def export_macaroon(macaroon: list[Macaroon]) -> list[dict[str, Any]]: ...


def export_macaroon(
    macaroon: Union[Macaroon, list[Macaroon]],
) -> Union[dict[str, Any], list[dict[str, Any]]]:
    """Convert a macaroon, or a list of them, to the exchange object form."""
    if isinstance(macaroon, list):
        return [export_macaroon(m) for m in macaroon]
    model = MacaroonModel(
        location=macaroon.location,
        identifier=macaroon.identifier,
        signature=macaroon.signature_hex,
        caveats=[_export_caveat(c) for c in macaroon.caveats],
    )
    return model.model_dump(exclude_none=True)


@overload
def import_macaroon(data: dict[str, Any]) -> Macaroon: ...


@overload
def import_macaroon(data: list[dict[str, Any]]) -> list[Macaroon]: ...


def import_macaroon(
    data: Union[dict[str, Any], list[dict[str, Any]]],
) -> Union[Macaroon, list[Macaroon]]:
    """Rebuild a macaroon, or a list of them, from the exchange object form.

    Raises
    ------
    InvalidArgumentError
        If the object is not a well-formed exchange object.
    """
    if isinstance(data, list):
        return [import_macaroon(item) for item in data]
    try:
        model = MacaroonModel.model_validate(data)
    except ValidationError as exc:
        raise InvalidArgumentError("macaroon object", str(exc)) from exc
    return Macaroon(
        location=model.location,
        identifier=model.identifier,
        signature=bytes.fromhex(model.signature),
        caveats=[_import_caveat(c) for c in model.caveats],
    )


# ---------------------------------------------------------------------------
# JSON text
# ---------------------------------------------------------------------------


def dumps(macaroon: Union[Macaroon, list[Macaroon]], indent: Optional[int] = None) -> str:
    """Serialize a macaroon (or list) to JSON text."""
    return json.dumps(export_macaroon(macaroon), indent=indent)


def loads(text: str) -> Union[Macaroon, list[Macaroon]]:
    """Parse JSON text produced by :func:`dumps`."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidArgumentError("macaroon JSON", str(exc)) from exc
    if not isinstance(data, (dict, list)):
        raise InvalidArgumentError("macaroon JSON", "expected an object or a list")
    return import_macaroon(data)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _export_caveat(caveat: Caveat) -> CaveatModel:
    if isinstance(caveat, ThirdPartyCaveat):
        return CaveatModel(
            cid=caveat.identifier,
            vid=_b64url_encode(caveat.verification_id),
            cl=caveat.location,
        )
    return CaveatModel(cid=caveat.identifier)


def _import_caveat(model: CaveatModel) -> Caveat:
    if model.vid is None or model.cl is None:
        return FirstPartyCaveat(model.cid)
    return ThirdPartyCaveat(model.cid, _b64url_decode(model.vid), model.cl)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    try:
        data = base64.b64decode(
            text + "=" * (-len(text) % 4), altchars=b"-_", validate=True
        )
    except binascii.Error as exc:
        raise InvalidArgumentError("caveat verification id", str(exc)) from exc
    # Only the canonical unpadded url-safe form is accepted.
    if _b64url_encode(data) != text:
        raise InvalidArgumentError(
            "caveat verification id", "expected unpadded url-safe base64"
        )
    return data

