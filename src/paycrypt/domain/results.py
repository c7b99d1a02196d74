"""Outcome types produced by the transaction orchestrator."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionOutcome(str, Enum):
    """Terminal outcome tag, produced once per pipeline invocation."""

    # Transfer workflow
    SENDER_WALLET_CREATED = "sender_wallet_created"
    SENDER_WALLET_CREATION_FAILED = "sender_wallet_creation_failed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    RECEIVER_UNRESOLVED = "receiver_unresolved"
    RECEIVER_WALLET_CREATION_FAILED = "receiver_wallet_creation_failed"
    LEDGER_ERROR = "ledger_error"
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSFER_FAILED = "transfer_failed"

    # Balance inquiry workflow
    BALANCE_RETRIEVED = "balance_retrieved"
    WALLET_CREATED_EMPTY = "wallet_created_empty"
    BALANCE_INQUIRY_FAILED = "balance_inquiry_failed"


# Outcomes after which the archived raw message is deleted
TERMINAL_SUCCESS_OUTCOMES = frozenset({
    TransactionOutcome.TRANSFER_COMPLETED,
    TransactionOutcome.WALLET_CREATED_EMPTY,
    TransactionOutcome.BALANCE_RETRIEVED,
})


class TransferErrorKind(str, Enum):
    """Classification of a rejected transfer."""
    NONCE_REUSE = "nonce_reuse"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GENERIC_REVERT = "generic_revert"


@dataclass(frozen=True)
class WalletResolution:
    """Ledger wallet resolved for an identity.

    Recomputed on every resolution and never persisted. When ``authoritative``
    is False the address must not be presented as a real wallet; it is None
    whenever wallet creation failed.

    Attributes:
        identity: Lowercased e-mail identity
        identity_hash: Ledger-facing account key
        address: Wallet address, if known
        authoritative: True only when the address came from the ledger
        created: True if the wallet was created during this resolution
        creation_ref: Ledger reference of the creation, if created
    """
    identity: str
    identity_hash: str
    address: Optional[str]
    authoritative: bool
    created: bool = False
    creation_ref: Optional[str] = None

    @classmethod
    def degraded(cls, identity: str, identity_hash: str) -> "WalletResolution":
        """Placeholder for a wallet that could not be created."""
        return cls(
            identity=identity,
            identity_hash=identity_hash,
            address=None,
            authoritative=False,
        )


@dataclass(frozen=True)
class TransactionResult:
    """Result of the transfer workflow for one TransactionIntent."""
    outcome: TransactionOutcome
    sender: str
    amount: Decimal
    currency: str
    message: str
    recipient: Optional[str] = None
    call_sign: Optional[str] = None
    sender_wallet: Optional[WalletResolution] = None
    receiver_wallet: Optional[WalletResolution] = None
    ledger_ref: Optional[str] = None
    nonce: Optional[int] = None
    sender_balance: Optional[Decimal] = None
    receiver_balance: Optional[Decimal] = None
    error_kind: Optional[TransferErrorKind] = None
    error_detail: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == TransactionOutcome.TRANSFER_COMPLETED

    @property
    def is_terminal_success(self) -> bool:
        return self.outcome in TERMINAL_SUCCESS_OUTCOMES


@dataclass(frozen=True)
class BalanceInquiryResult:
    """Result of the balance inquiry workflow."""
    outcome: TransactionOutcome
    sender: str
    currency: str
    message: str
    wallet: Optional[WalletResolution] = None
    balance: Optional[Decimal] = None
    ledger_ref: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome != TransactionOutcome.BALANCE_INQUIRY_FAILED

    @property
    def is_terminal_success(self) -> bool:
        return self.outcome in TERMINAL_SUCCESS_OUTCOMES
