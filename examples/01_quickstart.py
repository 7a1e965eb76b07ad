#!/usr/bin/env python3
"""Example: Quickstart

Mints an Almond, sends it as text and verifies it on the receiving side.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install almonds
"""
from __future__ import annotations

import almonds
from almonds import Almond, Verifier

SECRET = b"this_is_a_secret"


def main() -> None:
    print(f"almonds version: {almonds.__version__}")

    # Step 1: Issue a login almond scoped to one user
    almond = Almond.create(SECRET, 1, b"login").add_caveat(b"user", b"erikj")
    token = almond.serialize_base64()
    print(f"Issued token: {token}")

    # Step 2: Receive and validate it
    received = Almond.parse_base64_and_validate(SECRET, token)
    print(f"Caveats: {[c.decode() for c in received.caveats]}")

    # Step 3: Check the caveats
    verifier = Verifier(received, 1, b"login").satisfies_exact(b"user", b"erikj")
    print(f"Access for erikj: {verifier.verify()}")

    verifier = Verifier(received, 1, b"login").satisfies_exact(b"user", b"mallory")
    print(f"Access for mallory: {verifier.verify()}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
