"""Tests for macaroon_chain.cli.main — CLI commands via Click test runner."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from macaroon_chain.cli.main import cli
from macaroon_chain.serialization import import_macaroon

ROOT_KEY = "cli root key"
CAVEAT_KEY = "cli caveat key"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def minted_file(runner: CliRunner, tmp_path: Path) -> Path:
    path = tmp_path / "macaroon.json"
    result = runner.invoke(
        cli,
        [
            "mint",
            "user-42",
            "--location",
            "http://api.example.com/",
            "--root-key",
            ROOT_KEY,
            "--caveat",
            "op = read",
            "--output",
            str(path),
        ],
    )
    assert result.exit_code == 0, result.output
    return path


# ---------------------------------------------------------------------------
# Root CLI
# ---------------------------------------------------------------------------


class TestRootCLI:
    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0

    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "macaroon-chain" in result.output.lower()

    def test_version_option(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_log_level_option(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--log-level", "ERROR", "version"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# mint
# ---------------------------------------------------------------------------


class TestMintCommand:
    def test_mint_prints_json(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["mint", "user-1", "--location", "loc", "--root-key", ROOT_KEY]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["identifier"] == "user-1"
        assert data["caveats"] == []

    def test_mint_reads_root_key_from_env(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli,
            ["mint", "user-1", "--location", "loc"],
            env={"MACAROON_ROOT_KEY": ROOT_KEY},
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["identifier"] == "user-1"

    def test_mint_without_root_key_fails(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["mint", "user-1", "--location", "loc"], env={"MACAROON_ROOT_KEY": None}
        )
        assert result.exit_code != 0

    def test_mint_writes_output_file(self, minted_file: Path) -> None:
        macaroon = import_macaroon(json.loads(minted_file.read_text(encoding="utf-8")))
        assert macaroon.identifier == "user-42"
        assert [c.identifier for c in macaroon.caveats] == ["op = read"]


# ---------------------------------------------------------------------------
# add-caveat / inspect
# ---------------------------------------------------------------------------


class TestAddCaveatCommand:
    def test_appends_first_party_caveat(self, runner: CliRunner, minted_file: Path) -> None:
        result = runner.invoke(cli, ["add-caveat", str(minted_file), "account = 7"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [c["cid"] for c in data["caveats"]] == ["op = read", "account = 7"]

    def test_reads_from_stdin(self, runner: CliRunner, minted_file: Path) -> None:
        result = runner.invoke(
            cli,
            ["add-caveat", "-", "account = 7"],
            input=minted_file.read_text(encoding="utf-8"),
        )
        assert result.exit_code == 0
        assert len(json.loads(result.output)["caveats"]) == 2

    def test_invalid_input_exits_nonzero(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text('{"location": "x"}', encoding="utf-8")
        result = runner.invoke(cli, ["add-caveat", str(bad), "a"])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestInspectCommand:
    def test_lists_caveats(self, runner: CliRunner, minted_file: Path) -> None:
        result = runner.invoke(cli, ["inspect", str(minted_file)])
        assert result.exit_code == 0
        assert "user-42" in result.output
        assert "op = read" in result.output
        assert "1 caveat(s)" in result.output


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestVerifyCommand:
    def test_verify_passes(self, runner: CliRunner, minted_file: Path) -> None:
        result = runner.invoke(
            cli,
            ["verify", str(minted_file), "--root-key", ROOT_KEY, "--allow", "op = read"],
        )
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_verify_rejects_unsatisfied_caveat(
        self, runner: CliRunner, minted_file: Path
    ) -> None:
        result = runner.invoke(cli, ["verify", str(minted_file), "--root-key", ROOT_KEY])
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_verify_rejects_wrong_key(self, runner: CliRunner, minted_file: Path) -> None:
        result = runner.invoke(
            cli,
            ["verify", str(minted_file), "--root-key", "wrong", "--allow", "op = read"],
        )
        assert result.exit_code == 1

    def test_secretbox_without_pynacl_reports_error(
        self, runner: CliRunner, minted_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setitem(sys.modules, "nacl", None)
        result = runner.invoke(
            cli,
            [
                "verify",
                str(minted_file),
                "--root-key",
                ROOT_KEY,
                "--allow",
                "op = read",
                "--cipher",
                "secretbox",
            ],
        )
        assert result.exit_code == 1
        assert "pynacl" in result.output
        assert not isinstance(result.exception, ImportError)


# ---------------------------------------------------------------------------
# Third-party flow: add-third-party + bind + verify --discharges
# ---------------------------------------------------------------------------


class TestThirdPartyFlow:
    def test_full_flow(self, runner: CliRunner, minted_file: Path, tmp_path: Path) -> None:
        primary_file = tmp_path / "primary.json"
        result = runner.invoke(
            cli,
            [
                "add-third-party",
                str(minted_file),
                "--caveat-id",
                "is-authenticated",
                "--location",
                "http://auth.example.com/",
                "--caveat-key",
                CAVEAT_KEY,
                "--output",
                str(primary_file),
            ],
        )
        assert result.exit_code == 0, result.output

        discharge_file = tmp_path / "discharge.json"
        result = runner.invoke(
            cli,
            [
                "mint",
                "is-authenticated",
                "--location",
                "http://auth.example.com/",
                "--root-key",
                CAVEAT_KEY,
                "--output",
                str(discharge_file),
            ],
        )
        assert result.exit_code == 0

        result = runner.invoke(
            cli, ["bind", str(discharge_file), "--primary", str(primary_file)]
        )
        assert result.exit_code == 0
        discharges_file = tmp_path / "discharges.json"
        discharges_file.write_text(json.dumps([json.loads(result.output)]), encoding="utf-8")

        result = runner.invoke(
            cli,
            [
                "verify",
                str(primary_file),
                "--root-key",
                ROOT_KEY,
                "--allow",
                "op = read",
                "--discharges",
                str(discharges_file),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "PASS" in result.output

        # Missing discharge is reported as a failure.
        result = runner.invoke(
            cli,
            ["verify", str(primary_file), "--root-key", ROOT_KEY, "--allow", "op = read"],
        )
        assert result.exit_code == 1
