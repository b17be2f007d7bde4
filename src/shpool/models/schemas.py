"""Pydantic data models for relay and command-line payloads."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from shpool.utils.encoding import bytes_to_hex, normalize_address, to_bytes32


def _word(v) -> str:
    """Canonical 0x-prefixed 32-byte hex."""
    if isinstance(v, bool):
        raise ValueError("Expected a 32-byte word")
    return bytes_to_hex(to_bytes32(v))


class DepositRequest(BaseModel):
    """Request model for deposit operations."""
    commitment: str = Field(..., description="Commitment (32-byte hex)")
    amount: int = Field(..., gt=0, description="Amount to deposit")
    depositor: str = Field(..., description="Depositor address")
    expected_next_root: Optional[str] = Field(default=None, description="Root the depositor expects next")

    @field_validator("commitment", "expected_next_root")
    @classmethod
    def validate_word(cls, v):
        return None if v is None else _word(v)

    @field_validator("depositor")
    @classmethod
    def validate_depositor(cls, v: str) -> str:
        return normalize_address(v)

    def to_kwargs(self) -> dict:
        """Keyword arguments for ``ShieldedPool.deposit``."""
        return self.model_dump()


class WithdrawalRequest(BaseModel):
    """Request model for withdrawal operations."""
    proof: str = Field(..., description="Proof bytes (hex)")
    public_inputs: List[str] = Field(..., min_length=4, description="[nullifierHash, value, root, recipient, ...]")
    ciphertext: Optional[str] = Field(default=None, description="v2b amount disclosure (32-byte hex)")
    caller: Optional[str] = Field(default=None, description="Submitting account")

    @field_validator("proof")
    @classmethod
    def validate_proof(cls, v: str) -> str:
        hex_part = v[2:] if v.startswith(("0x", "0X")) else v
        bytes.fromhex(hex_part)
        return "0x" + hex_part.lower()

    @field_validator("public_inputs", mode="before")
    @classmethod
    def validate_public_inputs(cls, v):
        return [_word(w) for w in v]

    @field_validator("ciphertext")
    @classmethod
    def validate_ciphertext(cls, v):
        return None if v is None else _word(v)

    def to_kwargs(self) -> dict:
        """Keyword arguments for ``ShieldedPool.withdraw``."""
        return {
            "proof": bytes.fromhex(self.proof[2:]),
            "public_inputs": [to_bytes32(w) for w in self.public_inputs],
            "ciphertext": to_bytes32(self.ciphertext) if self.ciphertext else None,
            "caller": self.caller,
        }


class WithdrawalResponse(BaseModel):
    """Response model for withdrawal operations."""
    nullifier_hash: str
    recipient: str
    value: int
    root: str
    caller: Optional[str] = None
    ciphertext: Optional[str] = None
    history: List[str] = Field(default_factory=list, description="State transitions")
    timestamp: datetime

    @classmethod
    def from_receipt(cls, receipt) -> "WithdrawalResponse":
        """Build from a ``WithdrawalReceipt``."""
        return cls(**receipt.to_dict())


class NoteResponse(BaseModel):
    """A generated or inspected note."""
    note: str = Field(..., description="Compact note string")
    value: int
    commitment: str
    nullifier_hash: str
    expected_root: Optional[str] = Field(default=None, description="Root after a single-leaf deposit")


class CiphertextRequest(BaseModel):
    """Inputs of the v2b amount disclosure."""
    nullifier: str = Field(..., description="Nullifier hash (32-byte hex)")
    recipient: str = Field(..., description="Recipient address")
    salt_label: str = Field(default="ShieldedPool.v2b")

    @field_validator("nullifier")
    @classmethod
    def validate_nullifier(cls, v) -> str:
        return _word(v)

    @field_validator("recipient")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        return normalize_address(v)


class CiphertextResponse(BaseModel):
    """Ciphertext together with the inputs it binds."""
    ciphertext: str
    amount: int
    nullifier: str
    recipient_field: str


class RootListResponse(BaseModel):
    """Registered roots."""
    current_root: str
    roots: List[str]
    pending_roots: List[str] = Field(default_factory=list)


class PoolStateResponse(BaseModel):
    """Response model for pool state."""
    current_root: str = Field(..., description="Current root (hex)")
    num_roots: int = Field(..., description="Number of registered roots")
    num_commitments: int = Field(..., description="Number of commitments")
    num_nullifiers: int = Field(..., description="Number of spent nullifiers")
    total_deposited: int = Field(default=0)
    total_withdrawn: int = Field(default=0)
    last_update: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
