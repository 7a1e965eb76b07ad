"""Chained HMAC-SHA256 accumulator used by every Almond.

Each step keys HMAC-SHA256 with the current 32-byte accumulator and feeds
it the next message; the digest becomes the new accumulator. The chain
starts from :data:`ALMOND_HASH_SEED`, a public constant, and is first
extended with the issuer's secret key, so only the issuer can produce the
initial accumulator while anyone holding the current value can extend it.
"""
from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable

HASH_SIZE: int = 32

# Public domain-separation value, not a key. Must stay byte-identical for
# existing tokens to keep validating.
ALMOND_HASH_SEED: bytes = b"this_is_a_bit_of_arbitrary_data!"


def extend(accumulator: bytes, message: bytes) -> bytes:
    """Return HMAC-SHA256(key=*accumulator*, msg=*message*)."""
    return hmac.new(accumulator, message, hashlib.sha256).digest()


def chain(
    secret_key: bytes,
    generation: int,
    almond_type: bytes,
    caveats: Iterable[bytes] = (),
) -> bytes:
    """Fold a full header and caveat list into an accumulator.

    Parameters
    ----------
    secret_key:
        The issuer's secret.
    generation:
        Generation byte, 0..255.
    almond_type:
        Raw type bytes.
    caveats:
        Caveat byte strings in insertion order.

    Returns
    -------
    bytes
        The 32-byte accumulator.
    """
    accumulator = extend(ALMOND_HASH_SEED, secret_key)
    accumulator = extend(accumulator, bytes([generation]))
    accumulator = extend(accumulator, almond_type)
    for caveat in caveats:
        accumulator = extend(accumulator, caveat)
    return accumulator


def hashes_equal(expected: bytes, actual: bytes) -> bool:
    """Compare two accumulators in constant time."""
    return hmac.compare_digest(expected, actual)
