"""Note model: the private tuple a holder must know to withdraw.

A note n = (secret, nullifier_seed, value) where:
  - secret          = private field element (wallet-derived or bearer secret)
  - nullifier_seed  = private field element, revealed only as its hash
  - value           = token amount

Derived public identifiers:
  - commitment      = H3(secret, nullifier_seed, value), recorded on deposit
  - nullifier_hash  = H1(nullifier_seed), revealed once on withdrawal

Notes live only on the client. Persisting them is the caller's job;
``serialize_note``/``parse_note`` give a compact string for that.
"""

import re
import secrets
from dataclasses import dataclass, field
from typing import Optional, Union

from shpool.crypto.field_hash import BN254_PRIME, FieldHasher, get_field_hasher, is_field_element
from shpool.exceptions import InvalidNoteError, MalformedNoteError
from shpool.utils.encoding import bytes_to_hex, int_to_bytes32
from shpool.utils.hash import combine_root

NOTE_PREFIX = "shpool-note-v1"

_NOTE_PATTERN = re.compile(
    r"^" + re.escape(NOTE_PREFIX) + r"-([1-9a-f][0-9a-f]*)-([0-9a-f]{64})-([0-9a-f]{64})$"
)


def random_field_element() -> int:
    """
    Draw a uniformly random 256-bit value reduced modulo the field prime.

    The modular bias is below 2^-250 and cryptographically negligible.
    """
    return secrets.randbits(256) % BN254_PRIME


@dataclass(frozen=True)
class Note:
    """Shielded unit of value together with its derived public identifiers."""

    secret: int
    nullifier_seed: int
    value: int

    commitment: bytes = field(init=False, repr=False, compare=False)
    nullifier_hash: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        for name in ("secret", "nullifier_seed", "value"):
            if not is_field_element(getattr(self, name)):
                raise InvalidNoteError(f"Note {name} must be a BN254 field element")
        if self.value <= 0:
            raise InvalidNoteError("Note value must be positive")

        object.__setattr__(self, "commitment", compute_commitment(self.secret, self.nullifier_seed, self.value))
        object.__setattr__(self, "nullifier_hash", compute_nullifier_hash(self.nullifier_seed))

    def expected_root(self, current_root: bytes) -> bytes:
        """Root the single-leaf combiner produces once this note is deposited."""
        return combine_root(current_root, self.commitment)

    def to_dict(self, current_root: Optional[bytes] = None) -> dict:
        """
        Convert to dictionary (the shape external note stores keep).

        With ``current_root`` the single-leaf ``expected_merkle_root`` is included.
        """
        data = {
            "secret": str(self.secret),
            "nullifier_seed": str(self.nullifier_seed),
            "value": str(self.value),
            "commitment": bytes_to_hex(self.commitment),
            "nullifier_hash": bytes_to_hex(self.nullifier_hash),
        }
        if current_root is not None:
            data["expected_merkle_root"] = bytes_to_hex(self.expected_root(current_root))
        return data

    def __str__(self) -> str:
        return serialize_note(self)


def compute_commitment(
    secret: int, nullifier_seed: int, value: int, hasher: Optional[FieldHasher] = None
) -> bytes:
    """Compute commitment = H3(secret, nullifier_seed, value) as a 32-byte word."""
    hasher = hasher or get_field_hasher()
    return int_to_bytes32(hasher.hash([secret, nullifier_seed, value]))


def compute_nullifier_hash(nullifier_seed: int, hasher: Optional[FieldHasher] = None) -> bytes:
    """Compute nullifier_hash = H1(nullifier_seed) as a 32-byte word."""
    hasher = hasher or get_field_hasher()
    return int_to_bytes32(hasher.hash([nullifier_seed]))


def _coerce_field(value: Union[int, str], name: str) -> int:
    if isinstance(value, str):
        try:
            value = int(value, 0)
        except ValueError:
            raise InvalidNoteError(f"Note {name} is not a number: {value!r}")
    if not is_field_element(value):
        raise InvalidNoteError(f"Note {name} must be a BN254 field element")
    return value


def generate_note(
    value: int,
    secret: Union[int, str],
    nullifier_seed: Optional[Union[int, str]] = None,
) -> Note:
    """
    Create a note and derive its commitment and nullifier hash.

    Args:
        value: Amount in token units (must be positive)
        secret: Secret field element; ints, decimal or 0x-hex strings
            (e.g. a wallet address) are accepted
        nullifier_seed: Nullifier seed; drawn at random when omitted

    Returns:
        Note: The note with derived ``commitment`` and ``nullifier_hash``

    Raises:
        InvalidNoteError: If value <= 0 or a field is out of range
    """
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidNoteError("Note value must be a positive integer")

    seed = random_field_element() if nullifier_seed is None else _coerce_field(nullifier_seed, "nullifier_seed")
    return Note(secret=_coerce_field(secret, "secret"), nullifier_seed=seed, value=value)


def serialize_note(note: Note) -> str:
    """
    Encode a note as ``shpool-note-v1-<value>-<secret>-<seed>`` (lowercase hex).

    ``parse_note(serialize_note(n)) == n`` for every note.
    """
    return f"{NOTE_PREFIX}-{note.value:x}-{note.secret:064x}-{note.nullifier_seed:064x}"


def parse_note(text: str) -> Note:
    """
    Decode a string produced by ``serialize_note``.

    Raises:
        MalformedNoteError: If the string is not a well-formed note
    """
    if not isinstance(text, str):
        raise MalformedNoteError(f"Expected str, got {type(text).__name__}")

    match = _NOTE_PATTERN.match(text.strip())
    if not match:
        raise MalformedNoteError("Note string does not match the expected format")

    value, secret, seed = (int(group, 16) for group in match.groups())
    if not (is_field_element(value) and is_field_element(secret) and is_field_element(seed)):
        raise MalformedNoteError("Note field exceeds the field modulus")

    return Note(secret=secret, nullifier_seed=seed, value=value)
