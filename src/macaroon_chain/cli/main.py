"""CLI entry point for macaroon-chain.

Invoked as::

    macaroon-chain [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m macaroon_chain.cli.main

Commands
--------
mint              Mint a new macaroon
add-caveat        Append a first-party caveat
add-third-party   Append a third-party caveat
inspect           Show a macaroon's caveats
verify            Verify a macaroon and its discharges
bind              Bind a discharge macaroon to a primary macaroon

Macaroons are read and written in the JSON exchange format. ``-`` reads
from standard input. Without ``--output`` the resulting JSON is written to
standard output.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from macaroon_chain import __version__
from macaroon_chain.caveat import ThirdPartyCaveat
from macaroon_chain.crypto.cipher import CaveatCipher, ChaCha20Poly1305Cipher, SecretBoxCipher
from macaroon_chain.errors import MacaroonError, VerificationError
from macaroon_chain.macaroon import Macaroon

console = Console()

_CIPHERS = ("chacha20", "secretbox")


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="macaroon-chain")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    show_default=True,
    help="Logging level.",
)
def cli(log_level: str) -> None:
    """Mint, attenuate and verify macaroons."""
    logging.basicConfig(level=getattr(logging, log_level))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]macaroon-chain[/bold] v{__version__}")


# ------------------------------------------------------------------
# mint
# ------------------------------------------------------------------


@cli.command(name="mint")
@click.argument("identifier")
@click.option("--location", "-l", required=True, help="Location of the target service.")
@click.option(
    "--root-key",
    envvar="MACAROON_ROOT_KEY",
    required=True,
    help="Root key (or set MACAROON_ROOT_KEY).",
)
@click.option(
    "--caveat",
    "-c",
    multiple=True,
    help="First-party caveat to add (repeatable).",
)
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write macaroon JSON to this file path.",
)
def mint_command(
    identifier: str,
    location: str,
    root_key: str,
    caveat: tuple[str, ...],
    output: str | None,
) -> None:
    """Mint a new macaroon named IDENTIFIER."""
    macaroon = Macaroon.mint(root_key, identifier, location)
    for caveat_id in caveat:
        macaroon.add_first_party_caveat(caveat_id)
    _emit(macaroon, output)


# ------------------------------------------------------------------
# add-caveat / add-third-party
# ------------------------------------------------------------------


@cli.command(name="add-caveat")
@click.argument("macaroon_file", type=click.File("r"))
@click.argument("caveat_id")
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write macaroon JSON to this file path.",
)
def add_caveat_command(macaroon_file: IO[str], caveat_id: str, output: str | None) -> None:
    """Append first-party CAVEAT_ID to the macaroon in MACAROON_FILE."""
    macaroon = _read_macaroon(macaroon_file)
    macaroon.add_first_party_caveat(caveat_id)
    _emit(macaroon, output)


@cli.command(name="add-third-party")
@click.argument("macaroon_file", type=click.File("r"))
@click.option("--caveat-id", required=True, help="Identifier understood by the third party.")
@click.option("--location", "-l", required=True, help="Location of the third party.")
@click.option(
    "--caveat-key",
    envvar="MACAROON_CAVEAT_KEY",
    required=True,
    help="Root key for the discharge macaroon (or set MACAROON_CAVEAT_KEY).",
)
@click.option(
    "--cipher",
    type=click.Choice(_CIPHERS),
    default="chacha20",
    show_default=True,
    help="Verification id cipher.",
)
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write macaroon JSON to this file path.",
)
def add_third_party_command(
    macaroon_file: IO[str],
    caveat_id: str,
    location: str,
    caveat_key: str,
    cipher: str,
    output: str | None,
) -> None:
    """Append a third-party caveat to the macaroon in MACAROON_FILE."""
    macaroon = _read_macaroon(macaroon_file)
    macaroon.add_third_party_caveat(caveat_key, caveat_id, location, cipher=_cipher(cipher))
    _emit(macaroon, output)


# ------------------------------------------------------------------
# inspect
# ------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument("macaroon_file", type=click.File("r"))
def inspect_command(macaroon_file: IO[str]) -> None:
    """Display the macaroon in MACAROON_FILE."""
    macaroon = _read_macaroon(macaroon_file)

    console.print(f"  Identifier: [bold]{escape(macaroon.identifier)}[/bold]")
    console.print(f"  Location:   {escape(macaroon.location)}")
    console.print(f"  Signature:  {macaroon.signature_hex}")

    if not macaroon.caveats:
        console.print("[yellow]No caveats.[/yellow]")
        return

    table = Table(title="Caveats", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Caveat ID", style="cyan")
    table.add_column("Location")

    for index, caveat in enumerate(macaroon.caveats):
        if isinstance(caveat, ThirdPartyCaveat):
            table.add_row(
                str(index), "third-party", escape(caveat.identifier), escape(caveat.location)
            )
        else:
            table.add_row(str(index), "first-party", escape(caveat.identifier), "")

    console.print(table)
    console.print(f"\nTotal: {len(macaroon.caveats)} caveat(s)")


# ------------------------------------------------------------------
# verify
# ------------------------------------------------------------------


@cli.command(name="verify")
@click.argument("macaroon_file", type=click.File("r"))
@click.option(
    "--root-key",
    envvar="MACAROON_ROOT_KEY",
    required=True,
    help="Root key the macaroon was minted with (or set MACAROON_ROOT_KEY).",
)
@click.option(
    "--discharges",
    type=click.File("r"),
    default=None,
    help="JSON file holding a list of bound discharge macaroons.",
)
@click.option(
    "--allow",
    "-a",
    multiple=True,
    help="First-party caveat to accept (repeatable).",
)
@click.option(
    "--allow-time-before",
    is_flag=True,
    default=False,
    help="Accept unexpired 'time-before' caveats.",
)
@click.option(
    "--cipher",
    type=click.Choice(_CIPHERS),
    default="chacha20",
    show_default=True,
    help="Verification id cipher.",
)
def verify_command(
    macaroon_file: IO[str],
    root_key: str,
    discharges: IO[str] | None,
    allow: tuple[str, ...],
    allow_time_before: bool,
    cipher: str,
) -> None:
    """Verify the macaroon in MACAROON_FILE."""
    from macaroon_chain.checkers import FirstPartyChecker
    from macaroon_chain.serialization import loads

    macaroon = _read_macaroon(macaroon_file)

    discharge_list: list[Macaroon] = []
    if discharges is not None:
        try:
            loaded = loads(discharges.read())
        except MacaroonError as exc:
            console.print(f"[red]Error:[/red] cannot read discharges: {escape(str(exc))}")
            sys.exit(1)
        discharge_list = loaded if isinstance(loaded, list) else [loaded]

    checker = FirstPartyChecker()
    for condition in allow:
        checker.satisfy_exact(condition)
    if allow_time_before:
        checker.satisfy_time_before()

    try:
        macaroon.verify(root_key, checker, discharge_list, cipher=_cipher(cipher))
    except VerificationError as exc:
        console.print(f"  [red]FAIL[/red]  {escape(str(exc))}")
        sys.exit(1)

    console.print(
        f"  [green]PASS[/green]  Macaroon {escape(repr(macaroon.identifier))} verified successfully."
    )


# ------------------------------------------------------------------
# bind
# ------------------------------------------------------------------


@cli.command(name="bind")
@click.argument("discharge_file", type=click.File("r"))
@click.option(
    "--primary",
    type=click.File("r"),
    required=True,
    help="JSON file holding the primary macaroon.",
)
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write macaroon JSON to this file path.",
)
def bind_command(discharge_file: IO[str], primary: IO[str], output: str | None) -> None:
    """Bind the discharge macaroon in DISCHARGE_FILE to a primary macaroon."""
    discharge = _read_macaroon(discharge_file)
    primary_macaroon = _read_macaroon(primary)
    discharge.bind(primary_macaroon.signature)
    _emit(discharge, output)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _cipher(name: str) -> CaveatCipher:
    if name == "secretbox":
        try:
            return SecretBoxCipher()
        except ImportError as exc:
            hint = escape("pip install macaroon-chain[nacl]")
            console.print(
                f"[red]Error:[/red] the secretbox cipher requires pynacl ({hint}): "
                f"{escape(str(exc))}"
            )
            sys.exit(1)
    return ChaCha20Poly1305Cipher()


def _read_macaroon(handle: IO[str]) -> Macaroon:
    """Load a single macaroon from an open JSON file, exiting on error."""
    from macaroon_chain.serialization import loads

    try:
        loaded = loads(handle.read())
    except MacaroonError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)
    if isinstance(loaded, list):
        console.print("[red]Error:[/red] expected a single macaroon, got a list")
        sys.exit(1)
    return loaded


def _emit(macaroon: Macaroon, output: str | None) -> None:
    from macaroon_chain.serialization import dumps

    macaroon_json = dumps(macaroon, indent=2)
    if output:
        Path(output).write_text(macaroon_json, encoding="utf-8")
        console.print(f"[green]Macaroon written to[/green] {output}")
        console.print(f"\n  Identifier: [bold]{escape(macaroon.identifier)}[/bold]")
        console.print(f"  Location:   {escape(macaroon.location)}")
        console.print(f"  Caveats:    {len(macaroon.caveats)}")
    else:
        click.echo(macaroon_json)


if __name__ == "__main__":
    cli()
