"""Verifier: apply acceptance rules to an Almond's caveats.

Every caveat is split at its first space into a key and an optional value
and starts out undecided. Rules (:meth:`Verifier.allow`,
:meth:`Verifier.satisfies`, :meth:`Verifier.satisfies_exact`) resolve the
caveats whose key matches, in the order they are called. :meth:`verify`
passes only when the token's generation and type match the expected ones
and every caveat has been accepted; a caveat no rule handled fails the
token.

The verifier trusts whatever Almond it is given. Build it from the result
of :meth:`~almonds.token.Almond.parse_and_validate`, never from an
unverified parse.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from almonds.token import Almond, BytesLike, to_bytes

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    """Resolution state of a single caveat.

    UNKNOWN: no rule has decided the caveat (fails :meth:`Verifier.verify`).
    ACCEPTED: the caveat is satisfied.
    REJECTED: a rule found the caveat unsatisfied.
    """

    UNKNOWN = "unknown"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class CaveatEntry:
    """A caveat split into key and value, plus its current decision.

    Parameters
    ----------
    key:
        Bytes before the first space, or the whole caveat.
    value:
        Bytes after the first space, or None when the caveat has no space.
    decision:
        Current resolution state.
    """

    key: bytes
    value: Optional[bytes]
    decision: Decision = Decision.UNKNOWN

    @classmethod
    def from_caveat(cls, caveat: bytes) -> "CaveatEntry":
        key, sep, value = caveat.partition(b" ")
        return cls(key=key, value=value if sep else None)

    def combine(self, result: bool) -> None:
        """AND *result* into the decision, treating UNKNOWN as true."""
        ok = result and self.decision != Decision.REJECTED
        self.decision = Decision.ACCEPTED if ok else Decision.REJECTED


class Verifier:
    """Evaluates acceptance rules against one Almond's caveats.

    Parameters
    ----------
    almond:
        A validated Almond.
    generation:
        The generation the caller expects.
    almond_type:
        The type the caller expects.

    Examples
    --------
    >>> almond = Almond.create(b"this_is_a_secret", 1, b"login")
    >>> _ = almond.add_caveat(b"user", b"erikj")
    >>> Verifier(almond, 1, b"login").satisfies_exact(b"user", b"erikj").verify()
    True
    """

    def __init__(self, almond: Almond, generation: int, almond_type: BytesLike) -> None:
        self._entries: list[CaveatEntry] = [
            CaveatEntry.from_caveat(caveat) for caveat in almond.caveats
        ]
        self._reject = (
            almond.generation != generation or almond.almond_type != to_bytes(almond_type)
        )
        if self._reject:
            logger.debug(
                "Almond header mismatch: expected generation %d, got %d",
                generation,
                almond.generation,
            )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def allow(self, key: BytesLike) -> "Verifier":
        """Accept every still-undecided caveat with *key*, whatever its value.

        Caveats that already carry a decision are left alone.
        """
        key_bytes = to_bytes(key)
        for entry in self._matching(key_bytes):
            if entry.decision == Decision.UNKNOWN:
                entry.decision = Decision.ACCEPTED
        return self

    def satisfies(self, key: BytesLike, predicate: Callable[[bytes], bool]) -> "Verifier":
        """Resolve caveats with *key* by calling *predicate* on their value.

        The result is ANDed into any earlier decision. A caveat with no
        value is reset to UNKNOWN without calling *predicate*, even if an
        earlier rule accepted it; a later rule may still resolve it.
        """
        key_bytes = to_bytes(key)
        for entry in self._matching(key_bytes):
            if entry.value is None:
                entry.decision = Decision.UNKNOWN
            else:
                entry.combine(bool(predicate(entry.value)))
        return self

    def satisfies_exact(self, key: BytesLike, value: Optional[BytesLike] = None) -> "Verifier":
        """Resolve caveats with *key* by comparing their value with *value*.

        ``value=None`` matches only caveats that have no value. The result
        is ANDed into any earlier decision.
        """
        key_bytes = to_bytes(key)
        expected = None if value is None else to_bytes(value)
        for entry in self._matching(key_bytes):
            entry.combine(entry.value == expected)
        return self

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def verify(self) -> bool:
        """Return True iff the header matched and every caveat is ACCEPTED."""
        return not self._reject and all(
            entry.decision == Decision.ACCEPTED for entry in self._entries
        )

    @property
    def rejected_header(self) -> bool:
        """True when the generation or type did not match."""
        return self._reject

    @property
    def entries(self) -> tuple[CaveatEntry, ...]:
        """Copies of the per-caveat state, in caveat order."""
        return tuple(replace(entry) for entry in self._entries)

    def unresolved(self) -> list[bytes]:
        """Return the keys of caveats that are not ACCEPTED, in order."""
        return [entry.key for entry in self._entries if entry.decision != Decision.ACCEPTED]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _matching(self, key: bytes) -> list[CaveatEntry]:
        return [entry for entry in self._entries if entry.key == key]

    def __repr__(self) -> str:
        return (
            f"Verifier(caveats={len(self._entries)}, "
            f"unresolved={len(self.unresolved())}, "
            f"rejected_header={self._reject!r})"
        )
