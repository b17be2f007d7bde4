"""Pydantic request / response models."""

from shpool.models.schemas import (
    CiphertextRequest,
    CiphertextResponse,
    DepositRequest,
    NoteResponse,
    PoolStateResponse,
    RootListResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)

__all__ = [
    "CiphertextRequest",
    "CiphertextResponse",
    "DepositRequest",
    "NoteResponse",
    "PoolStateResponse",
    "RootListResponse",
    "WithdrawalRequest",
    "WithdrawalResponse",
]
