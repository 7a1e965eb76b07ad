"""Tests for almonds.verifier: rule evaluation over caveats."""
from __future__ import annotations

import pytest

from almonds.token import Almond
from almonds.verifier import CaveatEntry, Decision, Verifier

SECRET = b"this_is_a_secret"


def make_almond(*caveats: bytes, generation: int = 1, almond_type: bytes = b"login") -> Almond:
    almond = Almond.create(SECRET, generation, almond_type)
    for caveat in caveats:
        almond.add_literal_caveat(caveat)
    return almond


def decisions(verifier: Verifier) -> list[Decision]:
    return [entry.decision for entry in verifier.entries]


# ---------------------------------------------------------------------------
# CaveatEntry
# ---------------------------------------------------------------------------


class TestCaveatEntry:
    def test_key_and_value(self) -> None:
        entry = CaveatEntry.from_caveat(b"user erikj")
        assert entry.key == b"user"
        assert entry.value == b"erikj"
        assert entry.decision == Decision.UNKNOWN

    def test_key_only(self) -> None:
        entry = CaveatEntry.from_caveat(b"guest")
        assert entry.key == b"guest"
        assert entry.value is None

    def test_only_first_space_splits(self) -> None:
        entry = CaveatEntry.from_caveat(b"path /a b c")
        assert entry.key == b"path"
        assert entry.value == b"/a b c"

    def test_trailing_space_gives_empty_value(self) -> None:
        entry = CaveatEntry.from_caveat(b"note ")
        assert entry.key == b"note"
        assert entry.value == b""


class TestDecision:
    def test_values(self) -> None:
        assert Decision.UNKNOWN.value == "unknown"
        assert Decision.ACCEPTED.value == "accepted"
        assert Decision.REJECTED.value == "rejected"


# ---------------------------------------------------------------------------
# Default deny
# ---------------------------------------------------------------------------


class TestDefaultDeny:
    def test_no_rules_fails(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        assert not verifier.verify()

    def test_unmatched_key_fails(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        verifier.allow(b"admin")
        assert not verifier.verify()
        assert verifier.unresolved() == [b"user"]

    def test_no_caveats_passes(self) -> None:
        assert Verifier(make_almond(), 1, b"login").verify()


# ---------------------------------------------------------------------------
# Header checks
# ---------------------------------------------------------------------------


class TestHeader:
    def test_generation_mismatch(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 2, b"login")
        verifier.allow(b"user")
        assert not verifier.verify()
        assert verifier.rejected_header

    def test_type_mismatch(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"notlogin")
        verifier.allow(b"user")
        assert not verifier.verify()
        assert verifier.rejected_header

    def test_mismatch_without_caveats(self) -> None:
        assert not Verifier(make_almond(), 1, b"access").verify()

    def test_str_type(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, "login")
        assert not verifier.rejected_header
        assert verifier.allow("user").verify()


# ---------------------------------------------------------------------------
# allow
# ---------------------------------------------------------------------------


class TestAllow:
    def test_accepts_any_value(self) -> None:
        verifier = Verifier(make_almond(b"user erikj", b"user bob"), 1, b"login")
        assert verifier.allow(b"user").verify()

    def test_accepts_valueless(self) -> None:
        assert Verifier(make_almond(b"guest"), 1, b"login").allow(b"guest").verify()

    def test_does_not_override_rejection(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        verifier.satisfies_exact(b"user", b"bob")
        verifier.allow(b"user")
        assert decisions(verifier) == [Decision.REJECTED]
        assert not verifier.verify()


# ---------------------------------------------------------------------------
# satisfies_exact
# ---------------------------------------------------------------------------


class TestSatisfiesExact:
    def test_accept_path(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        assert verifier.satisfies_exact(b"user", b"erikj").verify()

    def test_wrong_value(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        assert not verifier.satisfies_exact(b"user", b"bob").verify()

    def test_none_matches_valueless_only(self) -> None:
        verifier = Verifier(make_almond(b"guest", b"user erikj"), 1, b"login")
        verifier.satisfies_exact(b"guest", None).satisfies_exact(b"user", None)
        assert decisions(verifier) == [Decision.ACCEPTED, Decision.REJECTED]

    def test_value_does_not_match_valueless_caveat(self) -> None:
        verifier = Verifier(make_almond(b"guest"), 1, b"login")
        assert not verifier.satisfies_exact(b"guest", b"").verify()

    def test_all_instances_must_match(self) -> None:
        verifier = Verifier(make_almond(b"user erikj", b"user bob"), 1, b"login")
        verifier.satisfies_exact(b"user", b"erikj")
        assert decisions(verifier) == [Decision.ACCEPTED, Decision.REJECTED]
        assert not verifier.verify()

    def test_rejection_sticks(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        verifier.satisfies_exact(b"user", b"bob").satisfies_exact(b"user", b"erikj")
        assert not verifier.verify()

    def test_rule_sequence(self) -> None:
        verifier = Verifier(make_almond(b"user erikj", b"guest"), 1, b"login")
        verifier.allow(b"user")
        assert not verifier.verify()

        verifier.satisfies_exact(b"guest", None)
        assert verifier.verify()

        verifier.satisfies_exact(b"user", b"noterikj")
        assert not verifier.verify()


# ---------------------------------------------------------------------------
# satisfies
# ---------------------------------------------------------------------------


class TestSatisfies:
    def test_predicate_receives_value(self) -> None:
        seen: list[bytes] = []

        def record(value: bytes) -> bool:
            seen.append(value)
            return True

        verifier = Verifier(make_almond(b"time < 100", b"time < 200"), 1, b"login")
        assert verifier.satisfies(b"time", record).verify()
        assert seen == [b"< 100", b"< 200"]

    def test_predicate_false_rejects(self) -> None:
        verifier = Verifier(make_almond(b"time < 100"), 1, b"login")
        verifier.satisfies(b"time", lambda value: False)
        assert decisions(verifier) == [Decision.REJECTED]

    def test_results_are_anded(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        verifier.satisfies(b"user", lambda value: value == b"erikj")
        assert verifier.verify()
        verifier.satisfies(b"user", lambda value: False)
        verifier.satisfies(b"user", lambda value: True)
        assert not verifier.verify()

    def test_valueless_caveat_reset_to_unknown(self) -> None:
        def explode(value: bytes) -> bool:
            raise AssertionError("predicate must not be called")

        verifier = Verifier(make_almond(b"guest"), 1, b"login")
        verifier.allow(b"guest")
        assert verifier.verify()

        verifier.satisfies(b"guest", explode)
        assert decisions(verifier) == [Decision.UNKNOWN]
        assert not verifier.verify()

    def test_reset_caveat_can_be_resolved_again(self) -> None:
        verifier = Verifier(make_almond(b"guest"), 1, b"login")
        verifier.satisfies_exact(b"guest", b"x")
        assert decisions(verifier) == [Decision.REJECTED]

        verifier.satisfies(b"guest", lambda value: True)
        verifier.allow(b"guest")
        assert verifier.verify()

    def test_other_keys_untouched(self) -> None:
        verifier = Verifier(make_almond(b"user erikj", b"guest"), 1, b"login")
        verifier.satisfies(b"user", lambda value: True)
        assert decisions(verifier) == [Decision.ACCEPTED, Decision.UNKNOWN]


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class TestIntrospection:
    def test_entries_are_copies(self) -> None:
        verifier = Verifier(make_almond(b"user erikj"), 1, b"login")
        verifier.entries[0].decision = Decision.ACCEPTED
        assert not verifier.verify()

    def test_unresolved_lists_rejected_and_unknown(self) -> None:
        verifier = Verifier(make_almond(b"user erikj", b"guest", b"scope read"), 1, b"login")
        verifier.satisfies_exact(b"user", b"bob").allow(b"scope")
        assert verifier.unresolved() == [b"user", b"guest"]

    def test_verifiers_are_independent(self) -> None:
        almond = make_almond(b"user erikj")
        first = Verifier(almond, 1, b"login").allow(b"user")
        second = Verifier(almond, 1, b"login")
        assert first.verify()
        assert not second.verify()

    def test_repr(self) -> None:
        text = repr(Verifier(make_almond(b"user erikj"), 1, b"login"))
        assert "Verifier" in text
        assert "unresolved=1" in text


@pytest.mark.parametrize(
    ("generation", "almond_type", "expected"),
    [(1, b"login", True), (0, b"login", False), (1, b"Login", False), (1, b"", False)],
)
def test_header_matrix(generation: int, almond_type: bytes, expected: bool) -> None:
    verifier = Verifier(make_almond(b"user erikj"), generation, almond_type)
    assert verifier.satisfies_exact(b"user", b"erikj").verify() is expected
