"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "Shielded Pool Team"
__description__ = "Shielded-value pool ledger: commitments, roots, nullifiers and v2b disclosure"

from .core.note import Note, generate_note, serialize_note, parse_note
from .core.interfaces import InMemoryToken, StaticVerifier, CallableVerifier, CommandVerifier
from .core.pool import ShieldedPool, DepositReceipt, PoolState
from .core.withdrawal import WithdrawalReceipt, WithdrawalState
from .crypto.ciphertext import compute_ciphertext, decrypt_ciphertext
from .utils.encoding import to_recipient_field

__all__ = [
    "Note",
    "generate_note",
    "serialize_note",
    "parse_note",
    "InMemoryToken",
    "StaticVerifier",
    "CallableVerifier",
    "CommandVerifier",
    "ShieldedPool",
    "DepositReceipt",
    "PoolState",
    "WithdrawalReceipt",
    "WithdrawalState",
    "compute_ciphertext",
    "decrypt_ciphertext",
    "to_recipient_field",
]
