"""Exception hierarchy for the payment pipeline.

Every error the pipeline classifies derives from PayCryptError so callers can
tell domain failures apart from programming errors.
"""

from typing import Any, Optional

from .results import TransferErrorKind


class PayCryptError(Exception):
    """Base exception for PayCrypt domain errors."""
    pass


class IntentValidationError(PayCryptError):
    """Extracted intent failed the validation gate.

    Raised for unsupported currencies, non-positive amounts and messages with no
    operator address. The intent is discarded; the message is still archived.
    """
    pass


class LedgerError(PayCryptError):
    """Base exception for ledger gateway failures."""
    pass


class LedgerUnavailable(LedgerError):
    """Ledger gateway could not be reached or did not answer."""
    pass


class LedgerCallFailed(LedgerError):
    """Ledger gateway answered with an error.

    Attributes:
        code: Gateway error code, if any
        reason: Structured failure reason reported by the ledger, if any
        data: Raw error payload for debugging
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        reason: Optional[str] = None,
        data: Optional[Any] = None,
    ):
        super().__init__(message)
        self.code = code
        self.reason = reason
        self.data = data


class WalletCreationFailed(LedgerError):
    """Ledger refused or failed to create a wallet."""
    pass


class TransferRejected(LedgerError):
    """Ledger rejected a transfer.

    Attributes:
        kind: Classified rejection (nonce reuse, insufficient funds, generic revert)
        reason: Verbatim rejection reason from the ledger
    """

    def __init__(self, kind: TransferErrorKind, reason: str):
        super().__init__(reason)
        self.kind = kind
        self.reason = reason


class StorageError(PayCryptError):
    """Archive read or write failed."""
    pass


class ArchiveEntryNotFound(StorageError):
    """No archive entry exists for the requested email ID."""

    def __init__(self, email_id: str):
        super().__init__(f"Archive entry not found for email ID: {email_id}")
        self.email_id = email_id


class NotificationDeliveryError(PayCryptError):
    """Outbound notification could not be delivered."""

    def __init__(self, recipient: str, message: str):
        super().__init__(message)
        self.recipient = recipient
