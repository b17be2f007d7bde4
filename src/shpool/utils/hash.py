"""Cryptographic hash utilities."""

from typing import Sequence, Union

from Crypto.Hash import keccak

from shpool.utils.encoding import bytes32_to_int, int_to_bytes32

# Root combiner reduces the XOR of root and commitment below 2^253 before hashing
ROOT_COMBINER_MODULUS = 1 << 253


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute the Ethereum keccak-256 hash of data.

    This is the original Keccak padding, not NIST SHA3-256.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte digest
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def byte_hash(data: Union[bytes, str]) -> bytes:
    """General-purpose byte hash (keccak-256) used by the ciphertext and root combiner."""
    return keccak256(data)


def hash_concatenate(*data: Union[bytes, str]) -> bytes:
    """
    Hash concatenated data.

    Args:
        *data: Multiple bytes or strings to concatenate and hash

    Returns:
        bytes: keccak-256 hash of the packed concatenation
    """
    concatenated = b""
    for item in data:
        if isinstance(item, str):
            concatenated += item.encode("utf-8")
        else:
            concatenated += item
    return byte_hash(concatenated)


def field_hash(elements: Sequence[int]) -> int:
    """Hash field elements with the process-wide default field hasher."""
    from shpool.crypto.field_hash import get_field_hasher

    return get_field_hasher().hash(elements)


def combine_root(current_root: bytes, commitment: bytes) -> bytes:
    """
    Single-leaf root advancement: H((root XOR commitment) mod 2^253).

    Args:
        current_root: Current root (32 bytes)
        commitment: Newly deposited commitment (32 bytes)

    Returns:
        bytes: Next root (32 bytes)
    """
    mixed = (bytes32_to_int(current_root) ^ bytes32_to_int(commitment)) % ROOT_COMBINER_MODULUS
    return byte_hash(int_to_bytes32(mixed))
