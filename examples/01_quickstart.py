#!/usr/bin/env python3
"""Example: Quickstart

Mints a macaroon, attenuates it with first-party caveats and verifies it.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install macaroon-chain
"""
from __future__ import annotations

import datetime

import macaroon_chain
from macaroon_chain import FirstPartyChecker, Macaroon, VerificationError, time_before_caveat

ROOT_KEY = b"this is our super secret key; only we should know it"


def main() -> None:
    print(f"macaroon-chain version: {macaroon_chain.__version__}")

    # Step 1: Mint a macaroon
    macaroon = Macaroon.mint(ROOT_KEY, "we used our secret key", "http://mybank/")
    print(f"Minted: {macaroon!r}")

    # Step 2: Attenuate it
    deadline = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)
    macaroon.add_first_party_caveat("account = 3735928559")
    macaroon.add_first_party_caveat(time_before_caveat(deadline))
    print(f"Signature after caveats: {macaroon.signature_hex}")

    # Step 3: Verify
    check = FirstPartyChecker().satisfy_exact("account = 3735928559").satisfy_time_before()
    macaroon.verify(ROOT_KEY, check)
    print("Verified with the right account.")

    # Step 4: A different account is rejected
    wrong = FirstPartyChecker().satisfy_exact("account = 1").satisfy_time_before()
    try:
        macaroon.verify(ROOT_KEY, wrong)
    except VerificationError as exc:
        print(f"Rejected as expected: {exc}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
