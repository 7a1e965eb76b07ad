#!/usr/bin/env python3
"""Example: Restricting an Almond without the secret key

A holder narrows a token before passing it on, for instance to a
short-lived read-only worker. The issuer's verifier then has to handle
the new caveats as well.

Usage:
    python examples/02_holder_restriction.py

Requirements:
    pip install almonds
"""
from __future__ import annotations

import time

from almonds import Almond, IncorrectHash, Verifier

SECRET = b"this_is_a_secret"


def check(token: str, now: int) -> bool:
    almond = Almond.parse_base64_and_validate(SECRET, token)
    return (
        Verifier(almond, 1, b"access")
        .satisfies_exact(b"user", b"erikj")
        .satisfies(b"expires", lambda value: now < int(value))
        .satisfies(b"scope", lambda value: value in (b"read", b"write"))
        .verify()
    )


def main() -> None:
    now = int(time.time())

    # Step 1: The issuer hands out a user-scoped token
    issued = Almond.create(SECRET, 1, b"access").add_caveat(b"user", b"erikj")
    token = issued.serialize_base64()
    print(f"Issued:     {token}")

    # Step 2: The holder adds an expiry and a scope, without the secret
    holder = Almond.parse_base64_unverified(token)
    holder.add_caveat(b"expires", str(now + 60).encode()).add_caveat(b"scope", b"read")
    restricted = holder.serialize_base64()
    print(f"Restricted: {restricted}")

    # Step 3: The issuer accepts both, until the expiry passes
    print(f"\nIssued token valid now:          {check(token, now)}")
    print(f"Restricted token valid now:      {check(restricted, now)}")
    print(f"Restricted token valid later:    {check(restricted, now + 120)}")

    # Step 4: Dropping the restriction breaks the hash chain
    stripped = Almond.parse_base64_unverified(restricted)
    forged = Almond(stripped.hash, 1, b"access", [b"user erikj"]).serialize_base64()
    try:
        check(forged, now)
    except IncorrectHash as exc:
        print(f"Stripped token rejected:         {exc}")


if __name__ == "__main__":
    main()
