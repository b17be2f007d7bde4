"""Algebraic field hash over the BN254 scalar field.

Commitments and nullifier hashes must be computed with the same hash the
withdrawal circuit uses, otherwise notes generated here can never be spent.
The hash is therefore a pluggable collaborator: anything implementing
``FieldHasher`` can be installed with ``set_field_hasher``. The default is
Poseidon with the circomlib parameters, the same function Noir's
``poseidon::bn254`` and circomlibjs compute:

    - state width t = len(inputs) + 1, state = [0, *inputs], output state[0]
    - S-box x^5, 8 full rounds, partial rounds per width (Poseidon paper table)
    - round constants and the Cauchy MDS matrix drawn from the Grain LFSR
      seeded with (field=1, sbox=0, n=254, t, R_F, R_P)

Because a mismatch silently produces unspendable notes, compatibility is
checked once at startup by ``run_self_test`` against the hasher's built-in
known answers plus any configured vectors. A failure raises
``HashConfigurationError`` and the pool refuses to start.

Example Usage:
    >>> from shpool.crypto.field_hash import get_field_hasher
    >>> hasher = get_field_hasher()
    >>> commitment = hasher.hash([secret, nullifier_seed, value])
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from shpool.exceptions import HashConfigurationError, InvalidFieldElementError
from shpool.utils.encoding import bytes32_to_int, to_bytes32
from shpool.utils.hash import keccak256

logger = logging.getLogger(__name__)

# BN254 (alt_bn128) scalar field modulus
BN254_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FIELD_BITS = 254

FULL_ROUNDS = 8
# Partial rounds for widths t = 2..17
PARTIAL_ROUNDS = [56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68]
MAX_INPUTS = len(PARTIAL_ROUNDS)

# Known-answer vectors for the byte hash
KECCAK_VECTORS = [
    (b"", "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"),
    (b"abc", "4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"),
]


def is_field_element(value: int) -> bool:
    """Check that value is a canonical BN254 scalar."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < BN254_PRIME


class FieldHasher:
    """
    Interface for circuit-compatible field hashes.

    Implementations must be pure and deterministic and return a canonical
    field element. ``known_answers`` lists (inputs, output) pairs the
    self-test always checks for this hasher.
    """

    name = "abstract"
    known_answers: Tuple[Tuple[Tuple[int, ...], int], ...] = ()

    def hash(self, elements: Sequence[int]) -> int:
        raise NotImplementedError


class _GrainLFSR:
    """80-bit Grain LFSR in self-shrinking mode, as in the Poseidon parameter script."""

    SIZE = 80

    def __init__(self, width: int, partial_rounds: int):
        bits = (
            _bits(1, 2)  # prime field
            + _bits(0, 4)  # x^alpha S-box
            + _bits(FIELD_BITS, 12)
            + _bits(width, 12)
            + _bits(FULL_ROUNDS, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        # bit i of the register is sequence position i (position 0 leaves first)
        self._state = sum(bit << i for i, bit in enumerate(bits))
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        new_bit = ((s >> 62) ^ (s >> 51) ^ (s >> 38) ^ (s >> 23) ^ (s >> 13) ^ s) & 1
        self._state = (s >> 1) | (new_bit << (self.SIZE - 1))
        return new_bit

    def next_bit(self) -> int:
        while True:
            keep = self._clock()
            bit = self._clock()
            if keep:
                return bit

    def next_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value


def _bits(value: int, length: int) -> List[int]:
    return [int(b) for b in format(value, f"0{length}b")]


@lru_cache(maxsize=None)
def _round_parameters(width: int) -> Tuple[Tuple[int, ...], Tuple[Tuple[int, ...], ...]]:
    """Round constants and MDS matrix for one state width (circomlib parameters)."""
    partial = PARTIAL_ROUNDS[width - 2]
    grain = _GrainLFSR(width, partial)
    p = BN254_PRIME

    constants = []
    while len(constants) < (FULL_ROUNDS + partial) * width:
        candidate = grain.next_int(FIELD_BITS)
        if candidate < p:
            constants.append(candidate)

    while True:
        points = [grain.next_int(FIELD_BITS) % p for _ in range(2 * width)]
        if len(set(points)) != len(points):
            continue
        xs, ys = points[:width], points[width:]
        if any((x + y) % p == 0 for x in xs for y in ys):
            continue
        mds = tuple(tuple(pow(x + y, p - 2, p) for y in ys) for x in xs)
        return tuple(constants), mds


class Poseidon(FieldHasher):
    """Poseidon over BN254 with circomlib constants (x^5, R_F = 8)."""

    name = "poseidon-bn254-circomlib"
    known_answers = (
        ((1, 2), 0x115CC0F5E7D690413DF64C6B9662E9CF2A3617F2743245519E19607A4417189A),
    )

    def hash(self, elements: Sequence[int]) -> int:
        """
        Hash 1..16 field elements to one field element.

        Raises:
            InvalidFieldElementError: If an input is not a canonical field element
                or the input count is out of range
        """
        inputs = list(elements)
        if not 1 <= len(inputs) <= MAX_INPUTS:
            raise InvalidFieldElementError(
                f"Field hash takes 1 to {MAX_INPUTS} inputs, got {len(inputs)}"
            )
        for value in inputs:
            if not is_field_element(value):
                raise InvalidFieldElementError(f"Not a BN254 field element: {value!r}")

        return self._permute([0] + inputs)[0]

    def _permute(self, state: List[int]) -> List[int]:
        width = len(state)
        constants, mds = _round_parameters(width)
        partial = PARTIAL_ROUNDS[width - 2]
        half_full = FULL_ROUNDS // 2
        p = BN254_PRIME

        for r in range(FULL_ROUNDS + partial):
            offset = r * width
            state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]

            if r < half_full or r >= half_full + partial:
                state = [pow(s, 5, p) for s in state]
            else:
                state[0] = pow(state[0], 5, p)

            state = [sum(m * s for m, s in zip(row, state)) % p for row in mds]

        return state


def load_vectors(path: Union[str, Path]) -> List[Tuple[List[int], int]]:
    """
    Load field-hash known-answer vectors.

    The file is a JSON list of ``{"inputs": [...], "output": ...}`` objects;
    numbers may be ints or hex strings.

    Raises:
        HashConfigurationError: If the file cannot be read or parsed
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return [
            ([_parse_scalar(v) for v in item["inputs"]], _parse_scalar(item["output"]))
            for item in raw
        ]
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise HashConfigurationError(f"Cannot load field hash vectors from {path}: {e}")


def _parse_scalar(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return bytes32_to_int(to_bytes32(value))


def run_self_test(
    hasher: Optional[FieldHasher] = None,
    vectors: Optional[Sequence[Tuple[Sequence[int], int]]] = None,
) -> None:
    """
    Verify the hash configuration before the pool accepts any request.

    Checks:
    1. keccak-256 known answers (byte hash)
    2. field hasher is deterministic, canonical and order-sensitive
    3. the hasher's built-in known answers match
    4. every supplied field-hash vector matches

    Raises:
        HashConfigurationError: On any mismatch
    """
    hasher = hasher or get_field_hasher()

    for message, expected in KECCAK_VECTORS:
        if keccak256(message).hex() != expected:
            raise HashConfigurationError(f"keccak-256 mismatch for {message!r}")

    try:
        first = hasher.hash([1, 2])
        second = hasher.hash([1, 2])
        swapped = hasher.hash([2, 1])
    except Exception as e:
        raise HashConfigurationError(f"Field hasher {hasher.name} failed: {e}")

    if first != second:
        raise HashConfigurationError(f"Field hasher {hasher.name} is not deterministic")
    if not is_field_element(first):
        raise HashConfigurationError(f"Field hasher {hasher.name} returned a non-canonical value")
    if first == swapped:
        raise HashConfigurationError(f"Field hasher {hasher.name} ignores input order")

    checks = list(hasher.known_answers) + list(vectors or [])
    for inputs, expected in checks:
        try:
            actual = hasher.hash(list(inputs))
        except InvalidFieldElementError as e:
            raise HashConfigurationError(f"Invalid field hash vector {list(inputs)}: {e}")
        if actual != expected:
            raise HashConfigurationError(
                f"Field hash vector mismatch for {list(inputs)}: "
                f"expected {hex(expected)}, got {hex(actual)}"
            )

    logger.info("Hash self-test passed (field hasher=%s, vectors=%d)", hasher.name, len(checks))


# Process-wide default hasher
_field_hasher: Optional[FieldHasher] = None


def get_field_hasher() -> FieldHasher:
    """Get or create the default field hasher."""
    global _field_hasher
    if _field_hasher is None:
        _field_hasher = Poseidon()
    return _field_hasher


def set_field_hasher(hasher: Optional[FieldHasher]) -> None:
    """Install a circuit-specific field hasher (None restores the default)."""
    global _field_hasher
    _field_hasher = hasher
