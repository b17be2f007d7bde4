"""Unit tests for the note model."""

import pytest
from hypothesis import given, settings, strategies as st

from conftest import KeccakFieldHasher

from shpool.core.note import (
    NOTE_PREFIX,
    Note,
    compute_commitment,
    compute_nullifier_hash,
    generate_note,
    parse_note,
    serialize_note,
)
from shpool.crypto.field_hash import BN254_PRIME, Poseidon, set_field_hasher
from shpool.exceptions import InvalidNoteError, MalformedNoteError
from shpool.utils.encoding import int_to_bytes32
from shpool.utils.hash import combine_root

ALICE = "0x" + "a1" * 20


class TestGenerateNote:
    """Test note generation."""

    def test_deterministic(self):
        a = generate_note(100, secret=12345, nullifier_seed=678)
        b = generate_note(100, secret=12345, nullifier_seed=678)
        assert a.commitment == b.commitment
        assert a.nullifier_hash == b.nullifier_hash

    def test_commitment_definition(self):
        note = generate_note(100, secret=3, nullifier_seed=4)
        hasher = Poseidon()
        assert note.commitment == int_to_bytes32(hasher.hash([3, 4, 100]))
        assert note.nullifier_hash == int_to_bytes32(hasher.hash([4]))
        assert note.commitment == compute_commitment(3, 4, 100)
        assert note.nullifier_hash == compute_nullifier_hash(4)

    def test_address_secret(self):
        note = generate_note(100, secret=ALICE, nullifier_seed=1)
        assert note.secret == int(ALICE, 16)

    def test_random_seed(self):
        a = generate_note(100, secret=1)
        b = generate_note(100, secret=1)
        assert a.nullifier_seed != b.nullifier_seed
        assert 0 <= a.nullifier_seed < BN254_PRIME

    def test_value_changes_commitment(self):
        a = generate_note(100, secret=1, nullifier_seed=2)
        b = generate_note(101, secret=1, nullifier_seed=2)
        assert a.commitment != b.commitment
        assert a.nullifier_hash == b.nullifier_hash

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_value(self, value):
        with pytest.raises(InvalidNoteError):
            generate_note(value, secret=1, nullifier_seed=2)

    def test_field_bounds(self):
        generate_note(1, secret=BN254_PRIME - 1, nullifier_seed=BN254_PRIME - 1)
        with pytest.raises(InvalidNoteError):
            generate_note(1, secret=BN254_PRIME, nullifier_seed=1)
        with pytest.raises(InvalidNoteError):
            generate_note(1, secret="not-a-number", nullifier_seed=1)

    def test_custom_hasher(self):
        default = generate_note(100, secret=1, nullifier_seed=2)
        set_field_hasher(KeccakFieldHasher())
        custom = generate_note(100, secret=1, nullifier_seed=2)
        assert default.commitment != custom.commitment

    def test_expected_root(self):
        note = generate_note(100, secret=1, nullifier_seed=2)
        root = (1).to_bytes(32, "big")
        assert note.expected_root(root) == combine_root(root, note.commitment)

    def test_to_dict(self):
        note = generate_note(100, secret=1, nullifier_seed=2)
        d = note.to_dict()
        assert d["value"] == "100"
        assert d["commitment"] == "0x" + note.commitment.hex()
        assert "expected_merkle_root" not in d

        root = (1).to_bytes(32, "big")
        assert note.to_dict(root)["expected_merkle_root"] == "0x" + note.expected_root(root).hex()


class TestNoteSerialization:
    """Test the compact note string."""

    def test_format(self):
        note = generate_note(255, secret=1, nullifier_seed=2)
        text = serialize_note(note)
        assert text == f"{NOTE_PREFIX}-ff-{1:064x}-{2:064x}"
        assert str(note) == text

    def test_round_trip(self):
        note = generate_note(100, secret=ALICE, nullifier_seed=99)
        assert parse_note(serialize_note(note)) == note

    def test_boundary_values(self):
        p1 = BN254_PRIME - 1
        note = Note(secret=p1, nullifier_seed=p1, value=p1)
        assert parse_note(serialize_note(note)) == note

    def test_modulus_is_malformed(self):
        text = f"{NOTE_PREFIX}-1-{BN254_PRIME:064x}-{1:064x}"
        with pytest.raises(MalformedNoteError):
            parse_note(text)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "shpool-note-v1",
            f"shpool-note-v2-1-{1:064x}-{2:064x}",
            f"shpool-note-v1-0-{1:064x}-{2:064x}",
            f"shpool-note-v1-01-{1:064x}-{2:064x}",
            f"shpool-note-v1-1-{1:063x}-{2:064x}",
            f"shpool-note-v1-1-{'A' * 64}-{2:064x}",
            f"shpool-note-v1-1-{1:064x}-{2:064x}-extra",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(MalformedNoteError):
            parse_note(text)

    def test_non_string(self):
        with pytest.raises(MalformedNoteError):
            parse_note(b"shpool-note-v1")

    @given(
        st.integers(min_value=1, max_value=BN254_PRIME - 1),
        st.integers(min_value=0, max_value=BN254_PRIME - 1),
        st.integers(min_value=0, max_value=BN254_PRIME - 1),
    )
    @settings(max_examples=25, deadline=None)
    def test_round_trip_property(self, value, secret, seed):
        note = Note(secret=secret, nullifier_seed=seed, value=value)
        assert parse_note(serialize_note(note)) == note
