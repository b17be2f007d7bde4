"""Withdrawal authorization state machine.

States:

    RECEIVED -> PROOF_VERIFIED -> ROOT_CHECKED -> NULLIFIER_CHECKED
             -> FUNDS_RELEASED -> NULLIFIER_RECORDED        (success)

    any non-terminal state -> REJECTED(reason)              (failure)

Transition contract for one request ``(proof, public_inputs[, ciphertext])``:
    1. Decode public inputs into ``PublicInputs``      -> MalformedPublicInputs
    2. value == 0                                       -> ZeroValue
    3. Verifier oracle (outside the ledger lock)        -> InvalidProof
    4. Root registered                                  -> UnknownRoot
    5. Nullifier unspent                                -> AlreadySpent
    6. Ciphertext (v2b) carried as-is, not checked
    7. Atomically mark the nullifier and pay the recipient baked into the
       public inputs                                    -> MalformedRecipient,
                                                           InsufficientBalance
    8. Emit a withdrawal event

Steps 4-8 run under the pool lock. The verifier call is the slow part and
holds no lock, so the root and nullifier checks are made after it, against
the state that the mark-and-pay step will actually mutate.

The recipient comes from the proof's public inputs, never from the caller,
so anyone holding a valid proof can relay it without being able to redirect
the funds.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Union

from shpool.core.interfaces import EventSink, TokenTransfer, Verifier, WithdrawalEvent
from shpool.core.ledger import RootRegistry
from shpool.core.nullifier import NullifierLedger
from shpool.exceptions import (
    AlreadySpentError,
    InvalidProofError,
    MalformedPublicInputsError,
    MalformedRecipientError,
    StorageError,
    UnknownRootError,
    WithdrawalError,
    ZeroValueError,
)
from shpool.utils.encoding import bytes32_to_int, bytes_to_hex, recipient_from_field, to_bytes32

if TYPE_CHECKING:
    from shpool.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

Word = Union[bytes, str, int]


class WithdrawalState(str, Enum):
    """Withdrawal lifecycle states."""

    RECEIVED = "received"
    PROOF_VERIFIED = "proof_verified"
    ROOT_CHECKED = "root_checked"
    NULLIFIER_CHECKED = "nullifier_checked"
    FUNDS_RELEASED = "funds_released"
    NULLIFIER_RECORDED = "nullifier_recorded"
    REJECTED = "rejected"


_TRANSITIONS = {
    WithdrawalState.RECEIVED: WithdrawalState.PROOF_VERIFIED,
    WithdrawalState.PROOF_VERIFIED: WithdrawalState.ROOT_CHECKED,
    WithdrawalState.ROOT_CHECKED: WithdrawalState.NULLIFIER_CHECKED,
    WithdrawalState.NULLIFIER_CHECKED: WithdrawalState.FUNDS_RELEASED,
    WithdrawalState.FUNDS_RELEASED: WithdrawalState.NULLIFIER_RECORDED,
}

TERMINAL_STATES = frozenset({WithdrawalState.NULLIFIER_RECORDED, WithdrawalState.REJECTED})


@dataclass(frozen=True)
class PublicInputs:
    """
    Named view of the circuit's positional public inputs.

    Layout (32-byte words):
        [0] nullifier_hash
        [1] value
        [2] root
        [3] recipient_field (20-byte address, left-padded)
        [4:] extra words passed through to the verifier untouched
    """

    nullifier_hash: bytes
    value: int
    root: bytes
    recipient_field: bytes
    extra: Tuple[bytes, ...] = ()

    NULLIFIER_INDEX = 0
    VALUE_INDEX = 1
    ROOT_INDEX = 2
    RECIPIENT_INDEX = 3
    MIN_LENGTH = 4

    @classmethod
    def decode(cls, words: Sequence[Word]) -> "PublicInputs":
        """
        Decode positional words.

        Raises:
            MalformedPublicInputsError: On wrong length or a word that is not 32 bytes
        """
        if isinstance(words, (bytes, str)) or not hasattr(words, "__len__"):
            raise MalformedPublicInputsError("Public inputs must be a sequence of 32-byte words")
        if len(words) < cls.MIN_LENGTH:
            raise MalformedPublicInputsError(
                f"Expected at least {cls.MIN_LENGTH} public inputs, got {len(words)}"
            )
        try:
            normalized = [to_bytes32(w) for w in words]
        except (TypeError, ValueError) as e:
            raise MalformedPublicInputsError(f"Invalid public input word: {e}")

        return cls(
            nullifier_hash=normalized[cls.NULLIFIER_INDEX],
            value=bytes32_to_int(normalized[cls.VALUE_INDEX]),
            root=normalized[cls.ROOT_INDEX],
            recipient_field=normalized[cls.RECIPIENT_INDEX],
            extra=tuple(normalized[cls.MIN_LENGTH :]),
        )

    def encode(self) -> List[bytes]:
        """Re-encode to the exact positional words the verifier expects."""
        return [
            self.nullifier_hash,
            self.value.to_bytes(32, "big"),
            self.root,
            self.recipient_field,
            *self.extra,
        ]

    @property
    def recipient(self) -> str:
        """
        Address encoded in the recipient field.

        Raises:
            MalformedRecipientError: If the upper 12 bytes are not zero
        """
        try:
            return recipient_from_field(self.recipient_field)
        except ValueError as e:
            raise MalformedRecipientError(str(e))


@dataclass
class WithdrawalAttempt:
    """One pass through the state machine, with its transition history."""

    proof: bytes
    raw_public_inputs: Sequence[Word]
    ciphertext: Optional[bytes] = None
    caller: Optional[str] = None
    public_inputs: Optional[PublicInputs] = None
    state: WithdrawalState = WithdrawalState.RECEIVED
    history: List[WithdrawalState] = field(default_factory=lambda: [WithdrawalState.RECEIVED])
    reason: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: WithdrawalState) -> None:
        """Move to the next success state; skipping or leaving a terminal state is a bug."""
        if _TRANSITIONS.get(self.state) != target:
            raise RuntimeError(f"Illegal withdrawal transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def reject(self, error: WithdrawalError) -> WithdrawalError:
        """Enter REJECTED with the error's code and attach this attempt to the error."""
        if self.is_terminal:
            raise RuntimeError(f"Cannot reject a withdrawal in terminal state {self.state.value}")
        self.state = WithdrawalState.REJECTED
        self.history.append(WithdrawalState.REJECTED)
        self.reason = error.code
        error.attempt = self
        return error


@dataclass(frozen=True)
class WithdrawalReceipt:
    """Receipt for a successful withdrawal."""

    nullifier_hash: bytes
    recipient: str
    value: int
    root: bytes
    caller: Optional[str]
    ciphertext: Optional[bytes]
    history: Tuple[WithdrawalState, ...]
    timestamp: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "nullifier_hash": bytes_to_hex(self.nullifier_hash),
            "recipient": self.recipient,
            "value": self.value,
            "root": bytes_to_hex(self.root),
            "caller": self.caller,
            "ciphertext": bytes_to_hex(self.ciphertext) if self.ciphertext else None,
            "history": [s.value for s in self.history],
            "timestamp": self.timestamp.isoformat(),
        }


class WithdrawalStateMachine:
    """
    Drives ``WithdrawalAttempt`` objects through the transition contract.

    The machine shares the pool's lock, root registry, nullifier ledger,
    token and (optional) database so that the ledger tail of every
    withdrawal is serialized with deposits and root registrations.
    """

    def __init__(
        self,
        verifier: Verifier,
        roots: RootRegistry,
        nullifiers: NullifierLedger,
        token: TokenTransfer,
        events: EventSink,
        lock: threading.RLock,
        store: Optional["DatabaseManager"] = None,
    ):
        self.verifier = verifier
        self.roots = roots
        self.nullifiers = nullifiers
        self.token = token
        self.events = events
        self.lock = lock
        self.store = store

    def run(
        self,
        proof: bytes,
        public_inputs: Sequence[Word],
        ciphertext: Optional[Word] = None,
        caller: Optional[str] = None,
    ) -> WithdrawalReceipt:
        """
        Process one withdrawal request.

        Returns:
            WithdrawalReceipt: On success

        Raises:
            WithdrawalError: Subclass naming the rejection; ``error.attempt``
                holds the rejected attempt
            TokenTransferError: If the payout fails (ledger rolled back)
            StorageError: If the nullifier cannot be persisted (ledger rolled back)

        Any other error raised by the token during payout is re-raised
        after the nullifier mark is undone.
        """
        attempt = WithdrawalAttempt(
            proof=proof, raw_public_inputs=public_inputs, caller=caller
        )

        # 1. decode
        try:
            inputs = PublicInputs.decode(public_inputs)
            if ciphertext is not None:
                attempt.ciphertext = to_bytes32(ciphertext)
        except MalformedPublicInputsError as e:
            raise self._rejected(attempt, e)
        except (TypeError, ValueError) as e:
            raise self._rejected(attempt, MalformedPublicInputsError(f"Invalid ciphertext: {e}"))
        attempt.public_inputs = inputs

        # 2. zero value, before the oracle is consulted
        if inputs.value == 0:
            raise self._rejected(attempt, ZeroValueError("Withdrawal value must be greater than zero"))

        # 3. proof, outside the lock
        if not self._verify(proof, inputs):
            raise self._rejected(attempt, InvalidProofError("Proof verification failed"))
        attempt.advance(WithdrawalState.PROOF_VERIFIED)

        with self.lock:
            # 4. root
            if not self.roots.is_known_root(inputs.root):
                raise self._rejected(
                    attempt, UnknownRootError(f"Unknown root {bytes_to_hex(inputs.root)}")
                )
            attempt.advance(WithdrawalState.ROOT_CHECKED)

            # 5. nullifier
            if self.nullifiers.is_spent(inputs.nullifier_hash):
                raise self._rejected(
                    attempt,
                    AlreadySpentError(f"Nullifier {bytes_to_hex(inputs.nullifier_hash)} already spent"),
                )
            attempt.advance(WithdrawalState.NULLIFIER_CHECKED)

            # 6. ciphertext is informational for off-chain consumers

            # 7. mark + pay, all or nothing
            try:
                recipient = inputs.recipient
            except MalformedRecipientError as e:
                raise self._rejected(attempt, e)

            self._mark_and_pay(attempt, inputs, recipient)
            attempt.advance(WithdrawalState.FUNDS_RELEASED)
            attempt.advance(WithdrawalState.NULLIFIER_RECORDED)

            # 8. event
            self.events.emit(WithdrawalEvent(caller=caller, recipient=recipient, value=inputs.value))

        logger.info(
            "Withdrawal of %d to %s (nullifier %s, caller %s)",
            inputs.value,
            recipient,
            bytes_to_hex(inputs.nullifier_hash)[:18],
            caller,
        )

        return WithdrawalReceipt(
            nullifier_hash=inputs.nullifier_hash,
            recipient=recipient,
            value=inputs.value,
            root=inputs.root,
            caller=caller,
            ciphertext=attempt.ciphertext,
            history=tuple(attempt.history),
            timestamp=datetime.now(timezone.utc),
        )

    def _verify(self, proof: bytes, inputs: PublicInputs) -> bool:
        try:
            return bool(self.verifier.verify(proof, inputs.encode()))
        except Exception as e:
            logger.warning("Verifier error treated as invalid proof: %s", e, exc_info=True)
            return False

    def _mark_and_pay(self, attempt: WithdrawalAttempt, inputs: PublicInputs, recipient: str) -> None:
        """Mark the nullifier, persist it, then pay; undo the mark if anything after it fails."""
        record = self.nullifiers.mark_spent(
            inputs.nullifier_hash, recipient=recipient, value=inputs.value, root=inputs.root
        )

        if self.store is not None:
            try:
                self.store.save_nullifier(record)
            except StorageError as e:
                self.nullifiers.unmark(inputs.nullifier_hash)
                self._mark_failed(attempt, e)
                raise

        try:
            self.token.transfer_out(recipient, inputs.value)
        except Exception as e:
            self.nullifiers.unmark(inputs.nullifier_hash)
            if self.store is not None:
                try:
                    self.store.delete_nullifier(inputs.nullifier_hash)
                except StorageError:
                    logger.error(
                        "Could not remove persisted nullifier %s after failed payout",
                        bytes_to_hex(inputs.nullifier_hash),
                        exc_info=True,
                    )
            self._mark_failed(attempt, e)
            raise

    def _mark_failed(self, attempt: WithdrawalAttempt, error: Exception) -> None:
        attempt.state = WithdrawalState.REJECTED
        attempt.history.append(WithdrawalState.REJECTED)
        attempt.reason = getattr(error, "code", type(error).__name__)
        logger.warning("Withdrawal rolled back: %s", error)

    def _rejected(self, attempt: WithdrawalAttempt, error: WithdrawalError) -> WithdrawalError:
        attempt.reject(error)
        logger.info("Withdrawal rejected (%s): %s", error.code, error)
        return error
