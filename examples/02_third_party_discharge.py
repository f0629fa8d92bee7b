#!/usr/bin/env python3
"""Example: Third-party caveats and discharge collection

Adds a third-party caveat, collects the discharge macaroon from a
simulated authentication service and verifies the bundle.

Usage:
    python examples/02_third_party_discharge.py

Requirements:
    pip install macaroon-chain
"""
from __future__ import annotations

import asyncio

from macaroon_chain import Macaroon, allow_all, collect_discharges, dumps

ROOT_KEY = b"bank root key"

# The authentication service's view: caveat id -> caveat root key.
AUTH_SERVICE_KEYS: dict[str, bytes] = {"user = bob": b"shared with auth service"}


async def acquire(primary_location: str, location: str, caveat_id: str) -> Macaroon:
    """Pretend to ask the service at *location* to discharge *caveat_id*."""
    await asyncio.sleep(0.01)
    discharge = Macaroon.mint(AUTH_SERVICE_KEYS[caveat_id], caveat_id, location)
    discharge.add_first_party_caveat("authenticated-by = password")
    return discharge


async def main() -> None:
    # Step 1: The bank mints a macaroon requiring proof that the holder is bob
    primary = Macaroon.mint(ROOT_KEY, "bank-session-1", "http://mybank/")
    primary.add_first_party_caveat("op = read")
    primary.add_third_party_caveat(
        AUTH_SERVICE_KEYS["user = bob"], "user = bob", "http://auth.mybank/"
    )

    # Step 2: The client collects and binds every discharge
    bundle = await collect_discharges(primary, acquire)
    print(f"Collected {len(bundle) - 1} discharge(s)")
    print(dumps(bundle, indent=2))

    # Step 3: The bank verifies the bundle
    primary.verify(ROOT_KEY, allow_all, bundle[1:])
    print("\nBundle verified.")


if __name__ == "__main__":
    asyncio.run(main())
