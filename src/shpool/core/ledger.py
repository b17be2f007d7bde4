"""Commitment ledger and root registry.

Commitments are recorded once and never updated or deleted. Roots form an
append-only set with a distinguished current root; proofs are accepted
against any registered root, not only the current one.

These classes do no locking of their own. ``ShieldedPool`` owns them and
serializes every mutation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from shpool.exceptions import DuplicateCommitmentError, ZeroAmountError
from shpool.utils.encoding import WORD_SIZE, bytes_to_hex
from shpool.utils.hash import combine_root

logger = logging.getLogger(__name__)

GENESIS_ROOT = (1).to_bytes(WORD_SIZE, "big")

RootCombiner = Callable[[bytes, bytes], bytes]


@dataclass(frozen=True)
class CommitmentRecord:
    """Immutable record of a deposited commitment."""

    commitment: bytes
    amount: int
    depositor: str
    leaf_index: int
    expected_next_root: Optional[bytes] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "commitment": bytes_to_hex(self.commitment),
            "amount": self.amount,
            "depositor": self.depositor,
            "leaf_index": self.leaf_index,
            "expected_next_root": (
                bytes_to_hex(self.expected_next_root) if self.expected_next_root else None
            ),
            "created_at": self.created_at.isoformat(),
        }


class RootRegistry:
    """
    Append-only set of roots valid for proof verification.

    Invariants:
        - ``current_root`` is always a member
        - the set only grows
    """

    def __init__(self, genesis_root: bytes = GENESIS_ROOT):
        _check_word(genesis_root, "root")
        self._roots: List[bytes] = [genesis_root]
        self._known = {genesis_root}
        self._current = genesis_root

    @property
    def current_root(self) -> bytes:
        return self._current

    @property
    def roots(self) -> List[bytes]:
        """Registered roots in registration order."""
        return list(self._roots)

    def is_known_root(self, root: bytes) -> bool:
        return root in self._known

    def add(self, root: bytes) -> bool:
        """
        Register a root and make it current.

        Re-adding a known root is a no-op and leaves the current root as is.

        Returns:
            True if the root was new, False if it was already registered
        """
        _check_word(root, "root")
        if root in self._known:
            return False
        self._roots.append(root)
        self._known.add(root)
        self._current = root
        return True

    def set_current(self, root: bytes) -> None:
        """Point the current root at an already registered root."""
        if root not in self._known:
            raise ValueError(f"Root {bytes_to_hex(root)} is not registered")
        self._current = root

    def remove_latest(self, root: bytes, previous_current: bytes) -> None:
        """Undo the most recent ``add`` inside a failed atomic step."""
        if self._roots and self._roots[-1] == root and root != self._roots[0]:
            self._roots.pop()
            self._known.discard(root)
            self._current = previous_current

    def __len__(self) -> int:
        return len(self._roots)

    def __contains__(self, root: bytes) -> bool:
        return self.is_known_root(root)


class CommitmentLedger:
    """
    Registry of deposited commitments plus the root registry they feed.

    Args:
        roots: Root registry to advance
        combiner: Function ``(current_root, commitment) -> next_root`` used
            when automatic root advancement is enabled
        auto_advance_root: Advance the current root on every deposit
    """

    def __init__(
        self,
        roots: Optional[RootRegistry] = None,
        combiner: RootCombiner = combine_root,
        auto_advance_root: bool = False,
    ):
        self.roots = roots or RootRegistry()
        self.combiner = combiner
        self.auto_advance_root = auto_advance_root
        self._records: Dict[bytes, CommitmentRecord] = {}

    def validate_deposit(self, commitment: bytes, amount: int) -> None:
        """
        Check a deposit before any token moves.

        Raises:
            ZeroAmountError: If amount is zero (or negative)
            DuplicateCommitmentError: If the commitment is already recorded
        """
        _check_word(commitment, "commitment")
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ZeroAmountError(f"Amount must be an int, got {type(amount).__name__}")
        if amount <= 0:
            raise ZeroAmountError("Deposit amount must be greater than zero")
        if commitment in self._records:
            raise DuplicateCommitmentError(f"Commitment {bytes_to_hex(commitment)} already recorded")

    def record(
        self,
        commitment: bytes,
        amount: int,
        depositor: str,
        expected_next_root: Optional[bytes] = None,
    ) -> CommitmentRecord:
        """
        Record a validated commitment and advance the root if configured.

        Raises:
            ZeroAmountError, DuplicateCommitmentError: As ``validate_deposit``
        """
        self.validate_deposit(commitment, amount)
        if expected_next_root is not None:
            _check_word(expected_next_root, "expected_next_root")

        record = CommitmentRecord(
            commitment=commitment,
            amount=amount,
            depositor=depositor,
            leaf_index=len(self._records),
            expected_next_root=expected_next_root,
        )
        self._records[commitment] = record

        if self.auto_advance_root and expected_next_root is None:
            next_root = self.combiner(self.roots.current_root, commitment)
            self.roots.add(next_root)
            logger.debug("Root advanced to %s", bytes_to_hex(next_root))

        return record

    def restore(self, record: CommitmentRecord) -> None:
        """Load a persisted record without re-running deposit checks or root advancement."""
        self._records[record.commitment] = record

    def forget(self, commitment: bytes) -> None:
        """Undo ``record`` inside a failed atomic step."""
        self._records.pop(commitment, None)

    def get(self, commitment: bytes) -> Optional[CommitmentRecord]:
        return self._records.get(commitment)

    def is_recorded(self, commitment: bytes) -> bool:
        return commitment in self._records

    def pending_roots(self) -> List[bytes]:
        """Expected next roots supplied by depositors but not yet registered."""
        return [
            r.expected_next_root
            for r in self._records.values()
            if r.expected_next_root is not None and not self.roots.is_known_root(r.expected_next_root)
        ]

    def records(self) -> List[CommitmentRecord]:
        return sorted(self._records.values(), key=lambda r: r.leaf_index)

    def __len__(self) -> int:
        return len(self._records)


def _check_word(value: bytes, name: str) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != WORD_SIZE:
        raise ValueError(f"{name} must be {WORD_SIZE} bytes")
