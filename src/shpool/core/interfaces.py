"""Collaborators the pool consumes: verifier oracle, token, events, admin.

The ledger never proves, holds tokens or indexes events itself. Each concern
is an interface with small in-process implementations used by tests, the
CLI and single-process deployments.
"""

import logging
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from shpool.exceptions import InsufficientAllowanceError, InsufficientBalanceError
from shpool.utils.encoding import bytes_to_hex, normalize_address

logger = logging.getLogger(__name__)


# ========== VERIFIER ORACLE ==========


class Verifier(ABC):
    """
    Opaque proof verifier for the withdrawal circuit.

    ``verify`` must be synchronous, deterministic for a given
    ``(proof, public_inputs)`` pair and free of side effects. It may be slow.
    """

    @abstractmethod
    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        ...


class StaticVerifier(Verifier):
    """Verifier that accepts (or rejects) every proof. Test deployments only."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.calls: List[Tuple[bytes, Tuple[bytes, ...]]] = []

    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        self.calls.append((proof, tuple(public_inputs)))
        return self.accept


class CallableVerifier(Verifier):
    """Adapt a plain function ``fn(proof, public_inputs) -> bool``."""

    def __init__(self, fn: Callable[[bytes, Sequence[bytes]], bool]):
        self.fn = fn

    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        return bool(self.fn(proof, public_inputs))


class CommandVerifier(Verifier):
    """
    Run an external verifier binary.

    The proof and the public inputs (one 0x-hex word per line) are written to
    temporary files whose paths are appended to ``command``. Exit status 0
    means the proof is valid.

    Example:
        >>> CommandVerifier(["bb", "verify", "-k", "target/vk", "-p"])
    """

    def __init__(self, command: Sequence[str], timeout: Optional[float] = None):
        self.command = list(command)
        self.timeout = timeout

    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        with tempfile.TemporaryDirectory(prefix="shpool-verify-") as tmp:
            proof_path = Path(tmp) / "proof"
            inputs_path = Path(tmp) / "public_inputs"
            proof_path.write_bytes(proof)
            inputs_path.write_text("\n".join(bytes_to_hex(w) for w in public_inputs), encoding="utf-8")

            cmd = self.command + [str(proof_path), str(inputs_path)]
            result = subprocess.run(cmd, capture_output=True, timeout=self.timeout)

        if result.returncode != 0:
            logger.debug("Verifier command rejected proof: %s", result.stderr.decode(errors="replace"))
        return result.returncode == 0


# ========== TOKEN TRANSFER ==========


class TokenTransfer(ABC):
    """Fungible-token capability the pool pulls deposits with and pays out from."""

    @abstractmethod
    def transfer_in(self, sender: str, amount: int) -> None:
        """Move amount from sender into the pool. Raises on failure."""

    @abstractmethod
    def transfer_out(self, recipient: str, amount: int) -> None:
        """Move amount from the pool to recipient. Raises on failure."""


class InMemoryToken(TokenTransfer):
    """
    ERC-20 style token ledger held in memory.

    ``transfer_in`` requires the sender to have approved the pool
    (``approve(owner, amount)``), like ``transferFrom`` on-chain.
    """

    def __init__(self, pool_address: str = "0x" + "00" * 19 + "01", symbol: str = "MOCK"):
        self.pool_address = normalize_address(pool_address)
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, int] = {}
        self._lock = threading.Lock()

    def mint(self, account: str, amount: int) -> None:
        account = normalize_address(account)
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + amount

    def approve(self, owner: str, amount: int) -> None:
        """Allow the pool to pull up to amount from owner."""
        with self._lock:
            self.allowances[normalize_address(owner)] = amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str) -> int:
        return self.allowances.get(normalize_address(owner), 0)

    def transfer_in(self, sender: str, amount: int) -> None:
        sender = normalize_address(sender)
        with self._lock:
            allowed = self.allowances.get(sender, 0)
            if allowed < amount:
                raise InsufficientAllowanceError(
                    f"Allowance {allowed} of {sender} is below {amount} {self.symbol}"
                )
            balance = self.balances.get(sender, 0)
            if balance < amount:
                raise InsufficientBalanceError(
                    f"Balance {balance} of {sender} is below {amount} {self.symbol}"
                )
            self.allowances[sender] = allowed - amount
            self.balances[sender] = balance - amount
            self.balances[self.pool_address] = self.balances.get(self.pool_address, 0) + amount

    def transfer_out(self, recipient: str, amount: int) -> None:
        recipient = normalize_address(recipient)
        with self._lock:
            held = self.balances.get(self.pool_address, 0)
            if held < amount:
                raise InsufficientBalanceError(f"Pool holds {held}, cannot pay {amount} {self.symbol}")
            self.balances[self.pool_address] = held - amount
            self.balances[recipient] = self.balances.get(recipient, 0) + amount


# ========== EVENTS ==========


@dataclass(frozen=True)
class DepositEvent:
    """Deposit notice for external indexers."""

    depositor: str
    commitment: bytes
    amount: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": "deposit",
            "depositor": self.depositor,
            "commitment": bytes_to_hex(self.commitment),
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class WithdrawalEvent:
    """Withdrawal notice for external indexers."""

    caller: Optional[str]
    recipient: str
    value: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": "withdrawal",
            "caller": self.caller,
            "recipient": self.recipient,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }


class EventSink(ABC):
    """Receives events. Nothing inside the pool reads them back."""

    @abstractmethod
    def emit(self, event) -> None:
        ...


class InMemoryEventSink(EventSink):
    """Collects events in a list."""

    def __init__(self):
        self.events: list = []

    def emit(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]


class LoggingEventSink(EventSink):
    """Writes events to the ``shpool.events`` logger."""

    def __init__(self, logger_name: str = "shpool.events"):
        self.logger = logging.getLogger(logger_name)

    def emit(self, event) -> None:
        self.logger.info("event %s", event.to_dict())


# ========== ADMIN CAPABILITY ==========


class AdminCapability(ABC):
    """Authorization check gating privileged operations such as register_root."""

    @abstractmethod
    def is_admin(self, caller: Optional[str]) -> bool:
        ...
