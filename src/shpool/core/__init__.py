"""Core ledger: notes, commitments, roots, nullifiers and withdrawals."""

from shpool.core.note import Note, generate_note, serialize_note, parse_note
from shpool.core.ledger import GENESIS_ROOT, CommitmentLedger, CommitmentRecord, RootRegistry
from shpool.core.nullifier import NullifierLedger, NullifierRecord
from shpool.core.withdrawal import (
    PublicInputs,
    WithdrawalAttempt,
    WithdrawalReceipt,
    WithdrawalState,
    WithdrawalStateMachine,
)
from shpool.core.interfaces import (
    AdminCapability,
    CallableVerifier,
    CommandVerifier,
    DepositEvent,
    EventSink,
    InMemoryEventSink,
    InMemoryToken,
    LoggingEventSink,
    StaticVerifier,
    TokenTransfer,
    Verifier,
    WithdrawalEvent,
)
from shpool.core.pool import DepositReceipt, PoolState, ShieldedPool

__all__ = [
    "Note",
    "generate_note",
    "serialize_note",
    "parse_note",
    "GENESIS_ROOT",
    "CommitmentLedger",
    "CommitmentRecord",
    "RootRegistry",
    "NullifierLedger",
    "NullifierRecord",
    "PublicInputs",
    "WithdrawalAttempt",
    "WithdrawalReceipt",
    "WithdrawalState",
    "WithdrawalStateMachine",
    "AdminCapability",
    "CallableVerifier",
    "CommandVerifier",
    "DepositEvent",
    "EventSink",
    "InMemoryEventSink",
    "InMemoryToken",
    "LoggingEventSink",
    "StaticVerifier",
    "TokenTransfer",
    "Verifier",
    "WithdrawalEvent",
    "DepositReceipt",
    "PoolState",
    "ShieldedPool",
]
