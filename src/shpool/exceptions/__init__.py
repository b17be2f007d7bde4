"""Custom exceptions for the shielded pool ledger.

Every exception carries a stable ``code`` so callers (relays, UIs, the CLI)
can map rejections without matching on class names or messages.
"""


class ShieldedPoolError(Exception):
    """Base exception for all shielded pool errors."""

    code = "ShieldedPoolError"


# Hash / crypto errors
class CryptoError(ShieldedPoolError):
    """Base exception for cryptographic errors."""

    code = "CryptoError"


class InvalidFieldElementError(CryptoError, ValueError):
    """Raised when a value is not a canonical scalar field element."""

    code = "InvalidFieldElement"


class HashConfigurationError(CryptoError):
    """Raised when the hash self-test fails. Fatal: the pool must not start."""

    code = "HashConfiguration"


# Note errors
class NoteError(ShieldedPoolError):
    """Base exception for note errors."""

    code = "NoteError"


class InvalidNoteError(NoteError, ValueError):
    """Raised when a note cannot be generated from the given fields."""

    code = "InvalidNote"


class MalformedNoteError(NoteError, ValueError):
    """Raised when a serialized note string cannot be parsed."""

    code = "MalformedNote"


# Ledger errors
class LedgerError(ShieldedPoolError):
    """Base exception for ledger operation errors."""

    code = "LedgerError"


class DepositError(LedgerError):
    """Base exception for deposit rejections."""

    code = "DepositError"


class ZeroAmountError(DepositError):
    """Raised when a deposit carries a zero amount."""

    code = "ZeroAmount"


class DuplicateCommitmentError(DepositError):
    """Raised when a commitment has already been recorded."""

    code = "DuplicateCommitment"


class UnauthorizedError(LedgerError):
    """Raised when a caller lacks the admin capability."""

    code = "Unauthorized"


# Withdrawal errors
class WithdrawalError(LedgerError):
    """
    Base exception for withdrawal rejections.

    Attributes:
        attempt: The ``WithdrawalAttempt`` that was rejected, when available.
    """

    code = "WithdrawalError"

    def __init__(self, message: str = "", attempt=None):
        super().__init__(message)
        self.attempt = attempt


class MalformedPublicInputsError(WithdrawalError):
    """Raised when public inputs have the wrong shape or width."""

    code = "MalformedPublicInputs"


class ZeroValueError(WithdrawalError):
    """Raised when the withdrawal value in the public inputs is zero."""

    code = "ZeroValue"


class InvalidProofError(WithdrawalError):
    """Raised when the verifier oracle rejects the proof or fails."""

    code = "InvalidProof"


class UnknownRootError(WithdrawalError):
    """Raised when the proof's root is not a registered root."""

    code = "UnknownRoot"


class AlreadySpentError(WithdrawalError):
    """Raised when attempting to spend the same nullifier twice."""

    code = "AlreadySpent"


class MalformedRecipientError(WithdrawalError):
    """Raised when the recipient field is not a left-padded 20-byte address."""

    code = "MalformedRecipient"


# Token errors
class TokenTransferError(ShieldedPoolError):
    """Base exception for token transfer failures."""

    code = "TokenTransferError"


class InsufficientBalanceError(TokenTransferError):
    """Raised when an account balance cannot cover a transfer."""

    code = "InsufficientBalance"


class InsufficientAllowanceError(TokenTransferError):
    """Raised when the pool is not approved to pull the requested amount."""

    code = "InsufficientAllowance"


# Storage errors
class StorageError(ShieldedPoolError):
    """Raised when the persistence layer fails."""

    code = "Storage"
