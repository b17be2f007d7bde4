"""Shielded pool: orchestration of deposits, root registration and withdrawals.

Architecture:
    1. Deposits: a commitment hides (secret, nullifier_seed, value); the pool
       records it and pulls the tokens
    2. Roots: an append-only registry of digests proofs may be checked against
    3. Withdrawals: a proof over (nullifier_hash, value, root, recipient)
       releases value to the recipient exactly once per nullifier
    4. Disclosure (v2b): an optional ciphertext lets off-chain parties who
       know (nullifier, recipient) recover the amount

Concurrency model:
    Every deposit, root registration and withdrawal ledger tail runs under a
    single re-entrant lock, so operations are linearizable. Proof
    verification runs before the lock is taken.

Example Usage:
    >>> from shpool import ShieldedPool, InMemoryToken, StaticVerifier, generate_note
    >>> token = InMemoryToken()
    >>> pool = ShieldedPool(verifier=StaticVerifier(), token=token, admins=[operator])
    >>> note = generate_note(100, secret=1)
    >>> token.mint(alice, 100); token.approve(alice, 100)
    >>> pool.deposit(note.commitment, 100, depositor=alice)
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from shpool.core.interfaces import (
    AdminCapability,
    DepositEvent,
    EventSink,
    InMemoryEventSink,
    TokenTransfer,
    Verifier,
)
from shpool.core.ledger import GENESIS_ROOT, CommitmentLedger, CommitmentRecord, RootCombiner, RootRegistry
from shpool.core.nullifier import NullifierLedger
from shpool.core.withdrawal import WithdrawalReceipt, WithdrawalStateMachine, Word
from shpool.crypto.field_hash import FieldHasher, run_self_test, set_field_hasher
from shpool.exceptions import UnauthorizedError
from shpool.utils.encoding import bytes_to_hex, normalize_address, to_bytes32
from shpool.utils.hash import combine_root

if TYPE_CHECKING:
    from shpool.config import PoolSettings
    from shpool.storage.database import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DepositReceipt:
    """Receipt for a successful deposit."""

    commitment: bytes
    amount: int
    depositor: str
    leaf_index: int
    current_root: bytes
    timestamp: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "commitment": bytes_to_hex(self.commitment),
            "amount": self.amount,
            "depositor": self.depositor,
            "leaf_index": self.leaf_index,
            "current_root": bytes_to_hex(self.current_root),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PoolState:
    """Snapshot of the pool ledger."""

    current_root: bytes
    num_roots: int
    num_commitments: int
    num_nullifiers: int
    total_deposited: int
    total_withdrawn: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "current_root": bytes_to_hex(self.current_root),
            "num_roots": self.num_roots,
            "num_commitments": self.num_commitments,
            "num_nullifiers": self.num_nullifiers,
            "total_deposited": self.total_deposited,
            "total_withdrawn": self.total_withdrawn,
        }


class ShieldedPool:
    """
    Authoritative owner of the commitment, root and nullifier ledgers.

    Args:
        verifier: Withdrawal proof oracle
        token: Token capability used for deposits and payouts
        admin: Authorization check for ``register_root``
        events: Sink for deposit / withdrawal events
        genesis_root: Initial current root
        auto_advance_root: Advance the root with ``combiner`` on every deposit
        combiner: Root advancement function
        store: Optional database the ledger writes through to
        field_hasher: Field hasher to install after it passes the startup self-test
        hash_vectors: Known-answer vectors for the self-test
        admins: Shorthand for an address allow-list when ``admin`` is not given

    Raises:
        HashConfigurationError: If the hash self-test fails
    """

    def __init__(
        self,
        verifier: Verifier,
        token: TokenTransfer,
        admin: Optional[AdminCapability] = None,
        events: Optional[EventSink] = None,
        genesis_root: bytes = GENESIS_ROOT,
        auto_advance_root: bool = False,
        combiner: RootCombiner = combine_root,
        store: Optional["DatabaseManager"] = None,
        field_hasher: Optional[FieldHasher] = None,
        hash_vectors: Optional[Sequence] = None,
        admins: Optional[Iterable[str]] = None,
    ):
        run_self_test(field_hasher, hash_vectors)
        if field_hasher is not None:
            set_field_hasher(field_hasher)

        if admin is None and admins is not None:
            from shpool.security.auth import AddressAdminPolicy

            admin = AddressAdminPolicy(admins)

        self.verifier = verifier
        self.token = token
        self.admin = admin
        self.events = events if events is not None else InMemoryEventSink()
        self.store = store

        self._lock = threading.RLock()
        self.roots = RootRegistry(genesis_root)
        self.commitments = CommitmentLedger(self.roots, combiner=combiner, auto_advance_root=auto_advance_root)
        self.nullifiers = NullifierLedger()
        self.withdrawals = WithdrawalStateMachine(
            verifier=verifier,
            roots=self.roots,
            nullifiers=self.nullifiers,
            token=token,
            events=self.events,
            lock=self._lock,
            store=store,
        )

        self.total_deposited = 0
        self.start_time = datetime.now(timezone.utc)

        if store is not None and not store.load_roots():
            store.save_root(genesis_root, make_current=True)

    # ========== CONSTRUCTION ==========

    @classmethod
    def from_settings(
        cls,
        settings: "PoolSettings",
        verifier: Verifier,
        token: TokenTransfer,
        events: Optional[EventSink] = None,
        field_hasher: Optional[FieldHasher] = None,
    ) -> "ShieldedPool":
        """Build a pool (restored from the configured database) from settings."""
        from shpool.crypto.field_hash import load_vectors
        from shpool.storage.database import DatabaseManager

        store = DatabaseManager(settings.database_url)
        store.create_tables()
        vectors = load_vectors(settings.field_hash_vectors) if settings.field_hash_vectors else None

        return cls.restore(
            store,
            verifier=verifier,
            token=token,
            admin=settings.admin_policy(),
            events=events,
            genesis_root=settings.genesis_root_bytes,
            auto_advance_root=settings.auto_advance_root,
            field_hasher=field_hasher,
            hash_vectors=vectors,
        )

    @classmethod
    def restore(cls, store: "DatabaseManager", **kwargs) -> "ShieldedPool":
        """
        Rebuild a pool from its persisted ledger.

        Roots are replayed in registration order and the persisted current
        root is reinstated; commitments and nullifiers are loaded as-is.
        """
        roots = store.load_roots()
        if roots:
            kwargs["genesis_root"] = roots[0]
        pool = cls(store=store, **kwargs)

        with pool._lock:
            for root in roots[1:]:
                pool.roots.add(root)
            current = store.get_current_root()
            if current is not None:
                pool.roots.set_current(current)
            for record in store.load_commitments():
                pool.commitments.restore(record)
                pool.total_deposited += record.amount
            for record in store.load_nullifiers():
                pool.nullifiers.restore(record)

        logger.info(
            "Restored pool: %d roots, %d commitments, %d nullifiers",
            len(pool.roots),
            len(pool.commitments),
            len(pool.nullifiers),
        )
        return pool

    # ========== DEPOSIT ==========

    def deposit(
        self,
        commitment: Word,
        amount: int,
        depositor: str,
        expected_next_root: Optional[Word] = None,
    ) -> DepositReceipt:
        """
        Record a commitment and pull ``amount`` tokens from the depositor.

        Steps:
        1. Reject zero amounts and duplicate commitments
        2. Record the commitment (advancing the root if configured)
        3. Persist, then pull the tokens; undo everything if either fails
        4. Emit a deposit event

        Args:
            commitment: 32-byte commitment (bytes or hex)
            amount: Token amount
            depositor: Address the tokens are pulled from
            expected_next_root: Root computed by the depositor; recorded
                and valid only after an operator registers it

        Returns:
            DepositReceipt: Commitment, leaf index and current root

        Raises:
            ZeroAmountError: If amount is zero
            DuplicateCommitmentError: If the commitment was already deposited
            InsufficientBalanceError, InsufficientAllowanceError: If the pull fails
            StorageError: If the deposit cannot be persisted

        Any other error raised by the token is re-raised after the same rollback.
        """
        try:
            commitment = to_bytes32(commitment)
            next_root = to_bytes32(expected_next_root) if expected_next_root is not None else None
            depositor = normalize_address(depositor)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Malformed deposit: {e}") from e

        with self._lock:
            self.commitments.validate_deposit(commitment, amount)

            previous_root = self.roots.current_root
            roots_before = len(self.roots)
            record = self.commitments.record(commitment, amount, depositor, expected_next_root=next_root)
            added_root = self.roots.current_root if len(self.roots) > roots_before else None

            try:
                if self.store is not None:
                    self.store.save_deposit(record, new_root=added_root)
                try:
                    self.token.transfer_in(depositor, amount)
                except Exception:
                    if self.store is not None:
                        self.store.delete_deposit(commitment, added_root, previous_root)
                    raise
            except Exception as e:
                self._undo_deposit(commitment, added_root, previous_root)
                logger.warning(
                    "Deposit of %s rolled back (%s): %s",
                    bytes_to_hex(commitment)[:18],
                    getattr(e, "code", type(e).__name__),
                    e,
                )
                raise

            self.total_deposited += amount
            self.events.emit(DepositEvent(depositor=depositor, commitment=commitment, amount=amount))
            current_root = self.roots.current_root

        logger.info("Deposit of %d from %s, commitment %s", amount, depositor, bytes_to_hex(commitment)[:18])

        return DepositReceipt(
            commitment=commitment,
            amount=amount,
            depositor=depositor,
            leaf_index=record.leaf_index,
            current_root=current_root,
            timestamp=datetime.now(timezone.utc),
        )

    def _undo_deposit(self, commitment: bytes, added_root: Optional[bytes], previous_root: bytes) -> None:
        self.commitments.forget(commitment)
        if added_root is not None:
            self.roots.remove_latest(added_root, previous_root)

    # ========== ROOTS ==========

    def register_root(self, root: Word, caller: Optional[str]) -> bool:
        """
        Register a root (privileged). Idempotent.

        Returns:
            True if the root was new, False if it was already registered

        Raises:
            UnauthorizedError: If caller lacks the admin capability
        """
        if self.admin is None or not self.admin.is_admin(caller):
            logger.warning("Unauthorized root registration attempt by %s", _redact(caller))
            raise UnauthorizedError("Caller is not allowed to register roots")

        root = to_bytes32(root)
        with self._lock:
            if self.roots.is_known_root(root):
                return False
            if self.store is not None:
                self.store.save_root(root, make_current=True)
            self.roots.add(root)

        logger.info("Registered root %s", bytes_to_hex(root))
        return True

    def is_known_root(self, root: Word) -> bool:
        """Check if a root is registered."""
        try:
            return self.roots.is_known_root(to_bytes32(root))
        except (TypeError, ValueError):
            return False

    @property
    def current_root(self) -> bytes:
        return self.roots.current_root

    def pending_roots(self) -> List[bytes]:
        """Expected next roots recorded with deposits and awaiting registration."""
        with self._lock:
            return self.commitments.pending_roots()

    # ========== WITHDRAWAL ==========

    def withdraw(
        self,
        proof: bytes,
        public_inputs: Sequence[Word],
        ciphertext: Optional[Word] = None,
        caller: Optional[str] = None,
    ) -> WithdrawalReceipt:
        """
        Authorize a withdrawal and pay the recipient named in the public inputs.

        Args:
            proof: Opaque proof bytes for the verifier
            public_inputs: ``[nullifier_hash, value, root, recipient_field, ...]``
            ciphertext: v2b amount disclosure (carried on the receipt only)
            caller: Account submitting the request; recorded, never paid

        Returns:
            WithdrawalReceipt: On success

        Raises:
            WithdrawalError: Subclass naming the rejection reason
        """
        return self.withdrawals.run(proof, public_inputs, ciphertext=ciphertext, caller=caller)

    def is_spent(self, nullifier_hash: Word) -> bool:
        """Check if a nullifier hash has been spent."""
        try:
            return self.nullifiers.is_spent(to_bytes32(nullifier_hash))
        except (TypeError, ValueError):
            return False

    # ========== QUERIES ==========

    def get_commitment(self, commitment: Word) -> Optional[CommitmentRecord]:
        return self.commitments.get(to_bytes32(commitment))

    def get_state(self) -> PoolState:
        """Return current pool state."""
        with self._lock:
            return PoolState(
                current_root=self.roots.current_root,
                num_roots=len(self.roots),
                num_commitments=len(self.commitments),
                num_nullifiers=len(self.nullifiers),
                total_deposited=self.total_deposited,
                total_withdrawn=sum(r.value or 0 for r in self.nullifiers.records()),
            )


def _redact(caller: Optional[str]) -> str:
    if not caller:
        return "<anonymous>"
    return caller if len(caller) <= 42 else caller[:10] + "..."
