"""Unit tests for the commitment ledger and root registry."""

import pytest

from shpool.core.ledger import GENESIS_ROOT, CommitmentLedger, RootRegistry
from shpool.core.nullifier import NullifierLedger
from shpool.exceptions import AlreadySpentError, DuplicateCommitmentError, ZeroAmountError
from shpool.utils.hash import combine_root

ALICE = "0x" + "a1" * 20
C1 = bytes.fromhex("11" * 32)
C2 = bytes.fromhex("22" * 32)
ROOT_A = bytes.fromhex("aa" * 32)
ROOT_B = bytes.fromhex("bb" * 32)


class TestRootRegistry:
    """Test root registration."""

    def test_genesis(self):
        roots = RootRegistry()
        assert roots.current_root == GENESIS_ROOT
        assert roots.is_known_root(GENESIS_ROOT)
        assert len(roots) == 1

    def test_add_makes_current(self):
        roots = RootRegistry()
        assert roots.add(ROOT_A) is True
        assert roots.current_root == ROOT_A
        assert roots.is_known_root(GENESIS_ROOT)

    def test_readd_is_noop(self):
        roots = RootRegistry()
        roots.add(ROOT_A)
        roots.add(ROOT_B)
        assert roots.add(ROOT_A) is False
        assert roots.current_root == ROOT_B
        assert roots.roots == [GENESIS_ROOT, ROOT_A, ROOT_B]

    def test_remove_latest(self):
        roots = RootRegistry()
        roots.add(ROOT_A)
        roots.remove_latest(ROOT_A, GENESIS_ROOT)
        assert not roots.is_known_root(ROOT_A)
        assert roots.current_root == GENESIS_ROOT

    def test_remove_latest_keeps_genesis(self):
        roots = RootRegistry()
        roots.remove_latest(GENESIS_ROOT, GENESIS_ROOT)
        assert roots.is_known_root(GENESIS_ROOT)

    def test_set_current(self):
        roots = RootRegistry()
        roots.add(ROOT_A)
        roots.set_current(GENESIS_ROOT)
        assert roots.current_root == GENESIS_ROOT
        with pytest.raises(ValueError):
            roots.set_current(ROOT_B)

    def test_rejects_wrong_size(self):
        with pytest.raises(ValueError):
            RootRegistry(b"\x01")
        with pytest.raises(ValueError):
            RootRegistry().add(b"\x01" * 31)


class TestCommitmentLedger:
    """Test commitment recording."""

    def test_record(self):
        ledger = CommitmentLedger()
        record = ledger.record(C1, 100, ALICE)
        assert record.leaf_index == 0
        assert ledger.is_recorded(C1)
        assert ledger.get(C1).amount == 100
        assert len(ledger) == 1

    def test_leaf_indices(self):
        ledger = CommitmentLedger()
        ledger.record(C1, 1, ALICE)
        assert ledger.record(C2, 1, ALICE).leaf_index == 1
        assert [r.commitment for r in ledger.records()] == [C1, C2]

    @pytest.mark.parametrize("amount", [0, -5])
    def test_zero_amount(self, amount):
        ledger = CommitmentLedger()
        with pytest.raises(ZeroAmountError):
            ledger.validate_deposit(C1, amount)

    def test_duplicate(self):
        ledger = CommitmentLedger()
        ledger.record(C1, 100, ALICE)
        with pytest.raises(DuplicateCommitmentError):
            ledger.record(C1, 5, ALICE)

    def test_no_auto_advance_by_default(self):
        ledger = CommitmentLedger()
        ledger.record(C1, 100, ALICE)
        assert ledger.roots.current_root == GENESIS_ROOT

    def test_auto_advance(self):
        ledger = CommitmentLedger(auto_advance_root=True)
        ledger.record(C1, 100, ALICE)
        assert ledger.roots.current_root == combine_root(GENESIS_ROOT, C1)

    def test_expected_next_root_is_pending(self):
        ledger = CommitmentLedger(auto_advance_root=True)
        ledger.record(C1, 100, ALICE, expected_next_root=ROOT_A)
        assert ledger.roots.current_root == GENESIS_ROOT
        assert ledger.pending_roots() == [ROOT_A]
        ledger.roots.add(ROOT_A)
        assert ledger.pending_roots() == []

    def test_forget(self):
        ledger = CommitmentLedger()
        ledger.record(C1, 100, ALICE)
        ledger.forget(C1)
        assert not ledger.is_recorded(C1)
        ledger.record(C1, 100, ALICE)


class TestNullifierLedger:
    """Test the spent-nullifier set."""

    def test_mark_spent(self):
        ledger = NullifierLedger()
        assert not ledger.is_spent(C1)
        record = ledger.mark_spent(C1, recipient=ALICE, value=10)
        assert ledger.is_spent(C1)
        assert C1 in ledger
        assert record.value == 10
        assert ledger.get_record(C1) == record

    def test_double_mark(self):
        ledger = NullifierLedger()
        ledger.mark_spent(C1)
        with pytest.raises(AlreadySpentError):
            ledger.mark_spent(C1)

    def test_unmark(self):
        ledger = NullifierLedger()
        ledger.mark_spent(C1)
        ledger.unmark(C1)
        assert not ledger.is_spent(C1)
        assert ledger.size == 0

    def test_rejects_wrong_size(self):
        with pytest.raises(ValueError):
            NullifierLedger().mark_spent(b"\x01")

    def test_to_dict(self):
        record = NullifierLedger().mark_spent(C1, recipient=ALICE, value=10, root=ROOT_A)
        d = record.to_dict()
        assert d["nullifier_hash"] == "0x" + "11" * 32
        assert d["root"] == "0x" + "aa" * 32
