"""Intents extracted from inbound messages.

Intents are transient: owned by a single pipeline invocation and never
persisted on their own.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class IntentVariant(str, Enum):
    TRANSFER = "transfer"
    TRANSFER_WITH_CALL_SIGN = "transfer_with_call_sign"


@dataclass(frozen=True)
class TransactionIntent:
    """A validated request to move funds.

    Exactly one of ``recipient`` (explicit address from the text) and
    ``call_sign`` is set by the grammar that produced the intent. For call-sign
    intents the recipient is looked up from ``candidate_recipients``, the
    non-operator To addresses in header order.
    """
    amount: Decimal
    currency: str
    sender: str
    variant: IntentVariant
    email_id: str
    recipient: Optional[str] = None
    call_sign: Optional[str] = None
    candidate_recipients: Tuple[str, ...] = ()
    message_id: Optional[str] = None
    rule: Optional[str] = None

    @property
    def nonce_seed(self) -> str:
        """Token the transfer nonce is derived from.

        The call sign when present, otherwise the Message-ID, so a re-delivered
        copy of the same request maps to the same nonce.
        """
        return self.call_sign or self.message_id or self.email_id


@dataclass(frozen=True)
class BalanceInquiryIntent:
    """A request for the sender's current wallet balance."""
    sender: str
    email_id: str
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ParseResult:
    """Output of IntentParser.parse; either, both or neither may be set."""
    transaction: Optional[TransactionIntent] = None
    balance_inquiry: Optional[BalanceInquiryIntent] = None

    @property
    def has_intent(self) -> bool:
        return self.transaction is not None or self.balance_inquiry is not None

    @property
    def kind(self) -> str:
        if self.transaction is not None:
            return self.transaction.variant.value
        if self.balance_inquiry is not None:
            return "balance_inquiry"
        return "none"
