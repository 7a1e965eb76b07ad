"""almonds: compact chained-HMAC bearer tokens that holders can restrict.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import almonds
>>> almonds.__version__
'0.1.0'

Quick start
-----------
::

    from almonds import Almond, Verifier

    almond = Almond.create(b"secret", 1, b"login").add_caveat(b"user", b"erikj")
    token = almond.serialize_base64()

    received = Almond.parse_base64_and_validate(b"secret", token)
    assert Verifier(received, 1, b"login").satisfies_exact(b"user", b"erikj").verify()
"""
from __future__ import annotations

__version__: str = "0.1.0"

from almonds.config import AlmondConfig, load_config
from almonds.hashing import ALMOND_HASH_SEED, HASH_SIZE, extend, hashes_equal
from almonds.token import (
    MIN_ALMOND_LENGTH,
    Almond,
    AlmondError,
    IncorrectHash,
    InvalidAlmond,
    InvalidCaveat,
)
from almonds.verifier import CaveatEntry, Decision, Verifier

__all__ = [
    # version
    "__version__",
    # hashing
    "ALMOND_HASH_SEED",
    "HASH_SIZE",
    "extend",
    "hashes_equal",
    # token
    "MIN_ALMOND_LENGTH",
    "Almond",
    "AlmondError",
    "IncorrectHash",
    "InvalidAlmond",
    "InvalidCaveat",
    # verifier
    "CaveatEntry",
    "Decision",
    "Verifier",
    # config
    "AlmondConfig",
    "load_config",
]
