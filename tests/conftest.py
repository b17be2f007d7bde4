"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from shpool.core.interfaces import InMemoryEventSink, InMemoryToken, StaticVerifier
from shpool.core.note import generate_note
from shpool.core.pool import ShieldedPool
from shpool.crypto.field_hash import BN254_PRIME, FieldHasher, set_field_hasher
from shpool.storage.database import DatabaseManager, reset_db_manager
from shpool.utils.encoding import bytes32_to_int, bytes_to_hex, int_to_bytes32, to_recipient_field
from shpool.utils.hash import keccak256

ADMIN = "0x" + "ad" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20


@pytest.fixture(autouse=True)
def default_field_hasher():
    """Every test starts and ends with the default field hasher."""
    set_field_hasher(None)
    yield
    set_field_hasher(None)
    reset_db_manager()


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a fresh SQLite-backed database manager."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'test.db'}")
    manager.create_tables()
    yield manager
    manager.engine.dispose()


@pytest.fixture
def token():
    """Token with a funded, approved depositor."""
    t = InMemoryToken()
    t.mint(ALICE, 10_000)
    t.approve(ALICE, 10_000)
    return t


@pytest.fixture
def verifier():
    return StaticVerifier(accept=True)


@pytest.fixture
def events():
    return InMemoryEventSink()


@pytest.fixture
def pool(verifier, token, events):
    """In-memory pool with ADMIN as the only operator."""
    return ShieldedPool(verifier=verifier, token=token, events=events, admins=[ADMIN])


@pytest.fixture
def funded_note(pool):
    """A 100-unit note deposited by ALICE with its root registered."""
    note = generate_note(100, secret=ALICE, nullifier_seed=0x5EED)
    pool.deposit(note.commitment, 100, depositor=ALICE)
    pool.register_root(note.expected_root(pool.current_root), ADMIN)
    return note


def make_public_inputs(note, recipient, root, value=None):
    """Public inputs [nullifierHash, value, root, recipientField] for a note."""
    return [
        note.nullifier_hash,
        (note.value if value is None else value).to_bytes(32, "big"),
        root,
        to_recipient_field(recipient),
    ]


@pytest.fixture(scope="session")
def test_data():
    """Fixture providing test data."""
    return {
        "admin": ADMIN,
        "alice": ALICE,
        "bob": BOB,
        "carol": CAROL,
        "commitment": "0x" + "11" * 32,
        "genesis_root": bytes_to_hex((1).to_bytes(32, "big")),
    }


class KeccakFieldHasher(FieldHasher):
    """Stand-in for a circuit built on a different field hash."""

    name = "keccak-mod-p"

    def hash(self, elements):
        data = b"".join(int_to_bytes32(e) for e in elements)
        return bytes32_to_int(keccak256(data)) % BN254_PRIME
