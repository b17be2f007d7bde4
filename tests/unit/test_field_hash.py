"""Unit tests for the field hasher and the startup self-test."""

import json

import pytest
from hypothesis import given, settings, strategies as st

from conftest import KeccakFieldHasher

from shpool.crypto.field_hash import (
    BN254_PRIME,
    FieldHasher,
    Poseidon,
    get_field_hasher,
    is_field_element,
    load_vectors,
    run_self_test,
    set_field_hasher,
)
from shpool.exceptions import HashConfigurationError, InvalidFieldElementError

field_elements = st.integers(min_value=0, max_value=BN254_PRIME - 1)


class ConstantHasher(FieldHasher):
    name = "constant"

    def hash(self, elements):
        return 7


class TestPoseidon:
    """Test the default field hasher."""

    def test_deterministic(self):
        hasher = Poseidon()
        assert hasher.hash([1, 2, 3]) == hasher.hash([1, 2, 3])

    def test_order_sensitive(self):
        hasher = Poseidon()
        assert hasher.hash([1, 2]) != hasher.hash([2, 1])

    def test_arity_sensitive(self):
        hasher = Poseidon()
        assert hasher.hash([1]) != hasher.hash([1, 0])

    @pytest.mark.parametrize(
        "elements, expected",
        [
            ([1, 2], 0x115CC0F5E7D690413DF64C6B9662E9CF2A3617F2743245519E19607A4417189A),
            ([3, 4], 0x20A3AF0435914CCD84B806164531B0CD36E37D4EFB93EFAB76913A93E1F30996),
            ([1, 2, 3, 4], 0x299C867DB6C1FDD79DCEFA40E4510B9837E60EBB1CE0663DBAA525DF65250465),
        ],
    )
    def test_circomlib_vectors(self, elements, expected):
        assert Poseidon().hash(elements) == expected

    def test_differs_from_other_hashers(self):
        assert Poseidon().hash([1]) != KeccakFieldHasher().hash([1])

    def test_rejects_non_field_elements(self):
        hasher = Poseidon()
        with pytest.raises(InvalidFieldElementError):
            hasher.hash([BN254_PRIME])
        with pytest.raises(InvalidFieldElementError):
            hasher.hash([-1])

    def test_rejects_bad_arity(self):
        hasher = Poseidon()
        with pytest.raises(InvalidFieldElementError):
            hasher.hash([])
        with pytest.raises(InvalidFieldElementError):
            hasher.hash(list(range(17)))

    @given(st.lists(field_elements, min_size=1, max_size=3))
    @settings(max_examples=25, deadline=None)
    def test_output_is_field_element(self, elements):
        assert is_field_element(Poseidon().hash(elements))


class TestSelfTest:
    """Test the hash configuration self-test."""

    def test_default_passes(self):
        run_self_test()

    def test_matching_vector_passes(self):
        hasher = Poseidon()
        run_self_test(hasher, [([1, 2], hasher.hash([1, 2]))])

    def test_mismatched_vector_fails(self):
        hasher = Poseidon()
        with pytest.raises(HashConfigurationError):
            run_self_test(hasher, [([1, 2], hasher.hash([1, 2]) + 1)])

    def test_invalid_vector_fails(self):
        with pytest.raises(HashConfigurationError):
            run_self_test(Poseidon(), [([BN254_PRIME], 0)])

    def test_order_insensitive_hasher_fails(self):
        with pytest.raises(HashConfigurationError):
            run_self_test(ConstantHasher())

    def test_builtin_vector_checked(self):
        class Tampered(Poseidon):
            def hash(self, elements):
                return (super().hash(elements) + 1) % BN254_PRIME

        with pytest.raises(HashConfigurationError, match="vector mismatch"):
            run_self_test(Tampered())

    def test_custom_hasher_skips_poseidon_vector(self):
        run_self_test(KeccakFieldHasher())

    def test_load_vectors(self, tmp_path):
        path = tmp_path / "vectors.json"
        path.write_text(json.dumps([{"inputs": [1, "0x2"], "output": "0x10"}]))
        assert load_vectors(path) == [([1, 2], 16)]

    def test_load_vectors_bad_file(self, tmp_path):
        path = tmp_path / "vectors.json"
        path.write_text("{not json")
        with pytest.raises(HashConfigurationError):
            load_vectors(path)
        with pytest.raises(HashConfigurationError):
            load_vectors(tmp_path / "missing.json")


class TestHasherRegistry:
    """Test the process-wide default hasher."""

    def test_default_is_poseidon(self):
        assert isinstance(get_field_hasher(), Poseidon)

    def test_set_and_reset(self):
        custom = KeccakFieldHasher()
        set_field_hasher(custom)
        assert get_field_hasher() is custom
        set_field_hasher(None)
        assert get_field_hasher() is not custom
