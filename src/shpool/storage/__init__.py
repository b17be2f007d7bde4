"""Storage layer for persistent ledger data."""

from shpool.storage.database import (
    DatabaseManager,
    CommitmentRow,
    RootRow,
    NullifierRow,
    Base,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "DatabaseManager",
    "CommitmentRow",
    "RootRow",
    "NullifierRow",
    "Base",
    "get_db_manager",
    "reset_db_manager",
]
