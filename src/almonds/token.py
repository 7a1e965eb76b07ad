"""Almond: a chained-HMAC bearer token that holders can only restrict.

An Almond carries a 32-byte accumulator, a one-byte ``generation``, a
``type`` and an ordered list of caveats. The accumulator is the HMAC chain
over the secret key, the generation byte, the type and every caveat in
order (see :mod:`almonds.hashing`). Appending a caveat only needs the
current accumulator, so any holder can narrow a token offline; removing
or altering one requires recomputing the chain from the secret key.

Binary format
-------------
::

    accumulator (32 bytes) || generation (1 byte) || type
        [ || 0x0A || caveat ]*

No trailing newline. The text form is URL-safe base64 of the binary form,
without ``=`` padding.

Caveats
-------
A caveat is either ``key`` or ``key value``; only the first space splits
the key from the value. Neither the type nor a caveat may contain a
newline byte since newline is the field separator.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Union

from almonds.hashing import HASH_SIZE, chain, extend, hashes_equal

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, str]

#: Accumulator, generation byte and at least one byte of type segment.
MIN_ALMOND_LENGTH: int = HASH_SIZE + 2

_SEPARATOR = b"\n"
_KEY_VALUE_SEPARATOR = b" "


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class AlmondError(Exception):
    """Base class for all Almond errors."""


class InvalidAlmond(AlmondError):
    """Raised when input cannot be decoded into an Almond at all."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid almond: {reason}")


class IncorrectHash(AlmondError):
    """Raised when the recomputed hash chain does not match the embedded one.

    The cause (tampering, wrong secret key, corruption) is deliberately not
    reported.
    """

    def __init__(self) -> None:
        super().__init__("Almond hash does not match")


class InvalidCaveat(AlmondError, ValueError):
    """Raised when a type, generation or caveat cannot be encoded."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid caveat: {reason}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_bytes(value: BytesLike) -> bytes:
    """Return *value* as bytes, UTF-8 encoding ``str`` input."""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _check_no_newline(field_name: str, value: bytes) -> None:
    if _SEPARATOR in value:
        raise InvalidCaveat(f"{field_name} must not contain a newline byte")


def _check_generation(generation: int) -> None:
    if not isinstance(generation, int) or not 0 <= generation <= 255:
        raise InvalidCaveat(f"generation must be an integer in 0..255, got {generation!r}")


def _decode_base64(text: BytesLike) -> bytes:
    """Decode URL-safe base64, with or without ``=`` padding."""
    try:
        raw = text.encode("ascii") if isinstance(text, str) else bytes(text)
        padded = raw + b"=" * (-len(raw) % 4)
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError) as exc:
        logger.debug("Rejected almond: base64 decoding failed")
        raise InvalidAlmond(f"could not decode base64: {exc}") from exc


def _split(data: bytes) -> tuple[bytes, int, bytes, list[bytes]]:
    """Split binary input into (hash, generation, type, caveats)."""
    if len(data) < MIN_ALMOND_LENGTH:
        logger.debug("Rejected almond: %d bytes is below the minimum length", len(data))
        raise InvalidAlmond(
            f"expected at least {MIN_ALMOND_LENGTH} bytes, got {len(data)}"
        )
    segments = data[HASH_SIZE + 1:].split(_SEPARATOR)
    return data[:HASH_SIZE], data[HASH_SIZE], segments[0], segments[1:]


# ---------------------------------------------------------------------------
# Almond
# ---------------------------------------------------------------------------


class Almond:
    """A deserialized Almond token.

    Create new tokens with :meth:`create` and rebuild received ones with
    :meth:`parse_and_validate`; the constructor itself performs no hashing.

    Examples
    --------
    >>> almond = Almond.create(b"this_is_a_secret", 1, b"login")
    >>> almond.add_caveat(b"user", b"erikj").serialize_base64()
    'yyTNYc-CAXTVkgXkNnl8wdMzBTMgHyLRSlXrjdf5Uw0BbG9naW4KdXNlciBlcmlrag'
    """

    def __init__(
        self,
        hash: bytes,
        generation: int,
        almond_type: bytes,
        caveats: Optional[list[bytes]] = None,
    ) -> None:
        self._hash = hash
        self._generation = generation
        self._almond_type = almond_type
        self._caveats: list[bytes] = list(caveats or [])

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        secret_key: BytesLike,
        generation: int,
        almond_type: BytesLike,
    ) -> "Almond":
        """Create a new Almond with no caveats.

        Parameters
        ----------
        secret_key:
            The issuer's secret. Only used to seed the hash chain; it is not
            stored on the token.
        generation:
            Caveat-format version, 0..255.
        almond_type:
            Application-defined token class, e.g. ``b"login"``.

        Raises
        ------
        InvalidCaveat
            When the generation is out of range or the type contains a
            newline.
        """
        _check_generation(generation)
        type_bytes = to_bytes(almond_type)
        _check_no_newline("almond type", type_bytes)

        accumulator = chain(to_bytes(secret_key), generation, type_bytes)
        return cls(hash=accumulator, generation=generation, almond_type=type_bytes)

    def add_caveat(self, key: BytesLike, value: Optional[BytesLike] = None) -> "Almond":
        """Append a ``key`` or ``key value`` caveat and extend the hash.

        No secret key is needed. Returns ``self`` so calls can be chained.

        Raises
        ------
        InvalidCaveat
            When *key* contains a space, or either part contains a newline.
        """
        key_bytes = to_bytes(key)
        if _KEY_VALUE_SEPARATOR in key_bytes:
            raise InvalidCaveat("caveat key must not contain a space")
        caveat = key_bytes
        if value is not None:
            caveat = key_bytes + _KEY_VALUE_SEPARATOR + to_bytes(value)
        return self.add_literal_caveat(caveat)

    def add_literal_caveat(self, caveat: BytesLike) -> "Almond":
        """Append an already-joined caveat byte string and extend the hash."""
        caveat_bytes = to_bytes(caveat)
        _check_no_newline("caveat", caveat_bytes)
        self._hash = extend(self._hash, caveat_bytes)
        self._caveats.append(caveat_bytes)
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def hash(self) -> bytes:
        """The current accumulator.

        Never compare this with ``==``; use
        :func:`almonds.hashing.hashes_equal`.
        """
        return self._hash

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def almond_type(self) -> bytes:
        return self._almond_type

    @property
    def caveats(self) -> tuple[bytes, ...]:
        """The caveats added so far, in order."""
        return tuple(self._caveats)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> bytes:
        """Serialize into the binary wire format."""
        body = _SEPARATOR.join([self._almond_type, *self._caveats])
        return self._hash + bytes([self._generation]) + body

    serialize_binary = serialize

    def serialize_base64(self) -> str:
        """Serialize into unpadded URL-safe base64."""
        return base64.urlsafe_b64encode(self.serialize()).rstrip(b"=").decode("ascii")

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def parse_and_validate(cls, secret_key: BytesLike, data: bytes) -> "Almond":
        """Parse a binary Almond and check its hash chain against *secret_key*.

        The chain is recomputed from scratch using the parsed generation,
        type and caveats, then compared with the embedded accumulator in
        constant time.

        Raises
        ------
        InvalidAlmond
            When *data* is shorter than :data:`MIN_ALMOND_LENGTH`.
        IncorrectHash
            When the recomputed accumulator does not match.
        """
        embedded, generation, almond_type, caveats = _split(bytes(data))

        almond = cls.create(secret_key, generation, almond_type)
        for caveat in caveats:
            almond.add_literal_caveat(caveat)

        if not hashes_equal(embedded, almond.hash):
            logger.debug("Rejected almond: hash validation failed")
            raise IncorrectHash()
        return almond

    @classmethod
    def parse_base64_and_validate(cls, secret_key: BytesLike, text: BytesLike) -> "Almond":
        """Decode URL-safe base64 and then :meth:`parse_and_validate`.

        Raises
        ------
        InvalidAlmond
            When *text* is not valid base64 or the decoded bytes are too short.
        IncorrectHash
            When the recomputed accumulator does not match.
        """
        return cls.parse_and_validate(secret_key, _decode_base64(text))

    @classmethod
    def parse_unverified(cls, data: bytes) -> "Almond":
        """Rebuild an Almond from bytes keeping the embedded accumulator.

        This lets a holder who does not know the secret key append further
        caveats and re-serialize. The result is NOT authenticated: anything
        read from it is attacker-controlled until the receiver runs
        :meth:`parse_and_validate`.

        Raises
        ------
        InvalidAlmond
            When *data* is shorter than :data:`MIN_ALMOND_LENGTH`.
        """
        embedded, generation, almond_type, caveats = _split(bytes(data))
        return cls(
            hash=embedded,
            generation=generation,
            almond_type=almond_type,
            caveats=caveats,
        )

    @classmethod
    def parse_base64_unverified(cls, text: BytesLike) -> "Almond":
        """Base64 counterpart of :meth:`parse_unverified`."""
        return cls.parse_unverified(_decode_base64(text))

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Almond):
            return NotImplemented
        return (
            self._generation == other._generation
            and self._almond_type == other._almond_type
            and self._caveats == other._caveats
            and hashes_equal(self._hash, other._hash)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Almond(generation={self._generation!r}, "
            f"almond_type={self._almond_type!r}, "
            f"caveats={len(self._caveats)})"
        )
