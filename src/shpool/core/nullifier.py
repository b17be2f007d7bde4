"""Nullifier ledger: at-most-once withdrawal per note.

A nullifier hash moves from absent to present exactly once, when a
withdrawal using it succeeds, and stays present forever. Anyone can check
the set; it cannot be linked back to a commitment.

Warning:
    ``mark_spent`` is only safe inside the pool's serialized section, paired
    with the fund release. Never mark a nullifier outside ``ShieldedPool``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from shpool.exceptions import AlreadySpentError
from shpool.utils.encoding import WORD_SIZE, bytes_to_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NullifierRecord:
    """
    Record of a spent nullifier.

    Tracks when and how a nullifier was used.
    """

    nullifier_hash: bytes
    recipient: Optional[str] = None
    value: Optional[int] = None
    root: Optional[bytes] = None
    spent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "nullifier_hash": bytes_to_hex(self.nullifier_hash),
            "recipient": self.recipient,
            "value": self.value,
            "root": bytes_to_hex(self.root) if self.root else None,
            "spent_at": self.spent_at.isoformat(),
        }


class NullifierLedger:
    """Set of consumed nullifier hashes."""

    def __init__(self):
        self._records: Dict[bytes, NullifierRecord] = {}

    def is_spent(self, nullifier_hash: bytes) -> bool:
        """Check if a nullifier has been spent."""
        return nullifier_hash in self._records

    def mark_spent(
        self,
        nullifier_hash: bytes,
        recipient: Optional[str] = None,
        value: Optional[int] = None,
        root: Optional[bytes] = None,
    ) -> NullifierRecord:
        """
        Record a nullifier as spent.

        Raises:
            AlreadySpentError: If the nullifier is already present
        """
        if not isinstance(nullifier_hash, (bytes, bytearray)) or len(nullifier_hash) != WORD_SIZE:
            raise ValueError(f"nullifier_hash must be {WORD_SIZE} bytes")
        if nullifier_hash in self._records:
            raise AlreadySpentError(f"Nullifier {bytes_to_hex(nullifier_hash)} already spent")

        record = NullifierRecord(nullifier_hash=nullifier_hash, recipient=recipient, value=value, root=root)
        self._records[nullifier_hash] = record
        return record

    def unmark(self, nullifier_hash: bytes) -> None:
        """Roll back ``mark_spent`` when the paired fund release failed."""
        if self._records.pop(nullifier_hash, None) is not None:
            logger.warning("Rolled back nullifier %s", bytes_to_hex(nullifier_hash))

    def restore(self, record: NullifierRecord) -> None:
        """Load a persisted record."""
        self._records[record.nullifier_hash] = record

    def get_record(self, nullifier_hash: bytes) -> Optional[NullifierRecord]:
        """Get spending record for a nullifier."""
        return self._records.get(nullifier_hash)

    def records(self) -> List[NullifierRecord]:
        return sorted(self._records.values(), key=lambda r: r.spent_at)

    @property
    def size(self) -> int:
        """Get number of spent nullifiers."""
        return len(self._records)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, nullifier_hash: bytes) -> bool:
        return self.is_spent(nullifier_hash)
