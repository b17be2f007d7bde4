"""Amount-disclosure ciphertext for the extended (v2b) withdrawal.

An off-chain observer who knows ``(nullifier, recipient)`` can recover the
withdrawn amount from a public 32-byte ciphertext:

    key        = H(nullifier || recipient_field || pool_salt)
    stream     = H(key || uint256(0))
    ciphertext = amount XOR stream

with H = keccak-256 and ``pool_salt = H("ShieldedPool.v2b")``. Decryption
is the same XOR.

Warning:
    The scheme has no authentication. A corrupted or substituted ciphertext
    decrypts to a wrong but plausible amount and no error is raised. Adding a
    MAC changes the wire format and needs agreement across every consumer.
"""

from typing import Union

from shpool.utils.encoding import bytes32_to_int, int_to_bytes32, to_bytes32
from shpool.utils.hash import byte_hash

POOL_SALT_LABEL = "ShieldedPool.v2b"
POOL_SALT = byte_hash(POOL_SALT_LABEL)

AMOUNT_LIMIT = 1 << 256

Word = Union[bytes, str, int]


def pool_salt(label: str = POOL_SALT_LABEL) -> bytes:
    """Domain-separation salt for a pool deployment."""
    return byte_hash(label)


def keystream(nullifier: Word, recipient_field: Word, salt: Word = POOL_SALT) -> int:
    """
    Derive the 256-bit keystream for one (nullifier, recipient) pair.

    Args:
        nullifier: Nullifier hash (public input 0)
        recipient_field: Left-padded recipient (public input 3)
        salt: Pool salt

    Returns:
        int: Keystream as an unsigned 256-bit integer
    """
    key = byte_hash(to_bytes32(nullifier) + to_bytes32(recipient_field) + to_bytes32(salt))
    return bytes32_to_int(byte_hash(key + int_to_bytes32(0)))


def compute_ciphertext(
    amount: int, nullifier: Word, recipient_field: Word, salt: Word = POOL_SALT
) -> bytes:
    """
    Encrypt an amount for a withdrawal.

    Raises:
        ValueError: If amount is outside [0, 2^256)
    """
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValueError(f"Amount must be an int, got {type(amount).__name__}")
    if not 0 <= amount < AMOUNT_LIMIT:
        raise ValueError("Amount must be in [0, 2^256)")
    return int_to_bytes32(amount ^ keystream(nullifier, recipient_field, salt))


def decrypt_ciphertext(
    ciphertext: Word, nullifier: Word, recipient_field: Word, salt: Word = POOL_SALT
) -> int:
    """Recover the amount from a ciphertext. Never fails on well-formed words."""
    return bytes32_to_int(to_bytes32(ciphertext)) ^ keystream(nullifier, recipient_field, salt)
