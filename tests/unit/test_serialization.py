"""Tests for macaroon_chain.serialization — the JSON exchange format."""
from __future__ import annotations

import json

import pytest

from macaroon_chain.caveat import FirstPartyCaveat, ThirdPartyCaveat
from macaroon_chain.checkers import allow_all
from macaroon_chain.errors import InvalidArgumentError
from macaroon_chain.macaroon import Macaroon
from macaroon_chain.serialization import dumps, export_macaroon, import_macaroon, loads

ROOT_KEY = b"serialization root key"
CAVEAT_KEY = b"serialization caveat key"


def make_macaroon() -> Macaroon:
    macaroon = Macaroon.mint(ROOT_KEY, "some id", "http://example.org/")
    macaroon.add_first_party_caveat("account = 3735928559")
    macaroon.add_third_party_caveat(CAVEAT_KEY, "third party id", "http://auth.example.org/")
    return macaroon


class TestExport:
    def test_object_shape(self) -> None:
        macaroon = make_macaroon()
        exported = export_macaroon(macaroon)
        assert list(exported) == ["location", "identifier", "signature", "caveats"]
        assert exported["location"] == "http://example.org/"
        assert exported["identifier"] == "some id"
        assert exported["signature"] == macaroon.signature_hex

    def test_first_party_caveat_has_only_cid(self) -> None:
        exported = export_macaroon(make_macaroon())
        assert exported["caveats"][0] == {"cid": "account = 3735928559"}

    def test_third_party_caveat_has_unpadded_urlsafe_vid(self) -> None:
        exported = export_macaroon(make_macaroon())
        caveat = exported["caveats"][1]
        assert set(caveat) == {"cid", "vid", "cl"}
        assert caveat["cl"] == "http://auth.example.org/"
        assert "=" not in caveat["vid"]
        assert "+" not in caveat["vid"] and "/" not in caveat["vid"]

    def test_exports_lists(self) -> None:
        macaroon = make_macaroon()
        exported = export_macaroon([macaroon, macaroon])
        assert isinstance(exported, list)
        assert len(exported) == 2

    def test_to_dict_delegates(self) -> None:
        macaroon = make_macaroon()
        assert macaroon.to_dict() == export_macaroon(macaroon)


class TestImport:
    def test_round_trip_preserves_macaroon(self) -> None:
        macaroon = make_macaroon()
        assert import_macaroon(export_macaroon(macaroon)) == macaroon

    def test_round_trip_reproduces_exported_object(self) -> None:
        exported = export_macaroon(make_macaroon())
        assert export_macaroon(import_macaroon(exported)) == exported

    def test_text_round_trip_is_byte_identical(self) -> None:
        text = dumps(make_macaroon())
        assert dumps(loads(text)) == text

    def test_imported_macaroon_verifies(self) -> None:
        primary = make_macaroon()
        discharge = Macaroon.mint(CAVEAT_KEY, "third party id", "http://auth.example.org/")
        discharge.bind(primary.signature)
        restored = loads(dumps([primary, discharge]))
        assert isinstance(restored, list)
        restored[0].verify(ROOT_KEY, allow_all, restored[1:])

    def test_caveat_types_restored(self) -> None:
        restored = Macaroon.from_dict(make_macaroon().to_dict())
        first, third = restored.caveats
        assert isinstance(first, FirstPartyCaveat)
        assert isinstance(third, ThirdPartyCaveat)

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda obj: obj.pop("identifier"),
            lambda obj: obj.update(location=5),
            lambda obj: obj.update(signature="zz" * 32),
            lambda obj: obj.update(signature="ab"),
            lambda obj: obj.update(signature=obj["signature"].upper()),
            lambda obj: obj["caveats"][1].pop("cl"),
            lambda obj: obj["caveats"][0].update(vid="AAAA"),
            lambda obj: obj["caveats"][0].update(extra="field"),
        ],
    )
    def test_malformed_objects_rejected(self, mutate) -> None:  # type: ignore[no-untyped-def]
        exported = export_macaroon(make_macaroon())
        mutate(exported)
        with pytest.raises(InvalidArgumentError):
            import_macaroon(exported)

    def test_bad_base64_vid_rejected(self) -> None:
        exported = export_macaroon(make_macaroon())
        exported["caveats"][1]["vid"] = "not*base64"
        with pytest.raises(InvalidArgumentError):
            import_macaroon(exported)

    def test_padded_vid_rejected(self) -> None:
        exported = export_macaroon(make_macaroon())
        vid = exported["caveats"][1]["vid"]
        exported["caveats"][1]["vid"] = vid + "=" * (-len(vid) % 4 or 4)
        with pytest.raises(InvalidArgumentError):
            import_macaroon(exported)

    def test_standard_alphabet_vid_rejected(self) -> None:
        macaroon = Macaroon(
            "http://example.org/",
            "some id",
            bytes(32),
            [ThirdPartyCaveat("tp", b"\xfb\xff", "http://auth.example.org/")],
        )
        exported = export_macaroon(macaroon)
        assert exported["caveats"][0]["vid"] == "-_8"
        assert import_macaroon(exported) == macaroon

        exported["caveats"][0]["vid"] = "+/8"
        with pytest.raises(InvalidArgumentError):
            import_macaroon(exported)

    def test_non_canonical_trailing_bits_rejected(self) -> None:
        exported = export_macaroon(make_macaroon())
        exported["caveats"][1]["vid"] = "AB"
        with pytest.raises(InvalidArgumentError):
            import_macaroon(exported)


class TestLoads:
    def test_invalid_json(self) -> None:
        with pytest.raises(InvalidArgumentError):
            loads("{not json")

    def test_scalar_json(self) -> None:
        with pytest.raises(InvalidArgumentError):
            loads(json.dumps("a string"))

    def test_indent_is_cosmetic(self) -> None:
        macaroon = make_macaroon()
        assert loads(dumps(macaroon, indent=2)) == macaroon
