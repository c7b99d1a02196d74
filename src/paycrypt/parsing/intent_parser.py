"""Intent extraction from inbound messages.

Turns an IncomingMessage into at most one TransactionIntent and at most one
BalanceInquiryIntent. Pure function of the message content plus the configured
operator addresses and supported currencies.
"""

import html
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import FrozenSet, Iterable, Optional, Sequence

from ..domain.exceptions import IntentValidationError
from ..domain.intents import (
    BalanceInquiryIntent,
    IntentVariant,
    ParseResult,
    TransactionIntent,
)
from ..domain.messages import IncomingMessage
from .grammar import BALANCE_INQUIRY_PATTERN, TRANSACTION_GRAMMAR, GrammarMatch, GrammarRule

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(markup: str) -> str:
    """Crude HTML to text conversion used when a message has no plain part."""
    return _WHITESPACE_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", markup))).strip()


class IntentParser:
    """Extract payment and balance-inquiry intents.

    Example:
        parser = IntentParser(
            operator_addresses={"pay@paycrypt.example"},
            supported_currencies={"DOT", "PYUSD"},
        )
        result = parser.parse(message)
        if result.transaction:
            ...
    """

    def __init__(
        self,
        operator_addresses: Iterable[str],
        supported_currencies: Iterable[str],
        grammar: Sequence[GrammarRule] = TRANSACTION_GRAMMAR,
    ):
        self.operator_addresses: FrozenSet[str] = frozenset(
            addr.strip().lower() for addr in operator_addresses
        )
        self.supported_currencies: FrozenSet[str] = frozenset(
            code.strip().upper() for code in supported_currencies
        )
        self.grammar = tuple(sorted(grammar, key=lambda rule: rule.priority))

    def parse(self, message: IncomingMessage) -> ParseResult:
        """Extract intents from a message.

        Args:
            message: Fully received inbound message

        Returns:
            ParseResult: transaction and/or balance inquiry, or neither
        """
        if not message.sender:
            logger.info(
                "Message has no sender identity, no intent extracted",
                extra={"email_id": message.email_id},
            )
            return ParseResult()

        content = self.searchable_content(message)
        return ParseResult(
            transaction=self.extract_transaction(message, content),
            balance_inquiry=self.extract_balance_inquiry(message, content),
        )

    def searchable_content(self, message: IncomingMessage) -> str:
        """Lowercased subject + body text the grammar is applied to."""
        body = message.text_body or html_to_text(message.html_body or "")
        return f"{message.subject or ''} {body}".lower()

    def extract_transaction(
        self,
        message: IncomingMessage,
        content: Optional[str] = None,
    ) -> Optional[TransactionIntent]:
        """Try each grammar rule in priority order; first valid match wins.

        A rule whose match fails validation is skipped and the next rule is
        tried. Returns None when no rule yields a valid intent.
        """
        if content is None:
            content = self.searchable_content(message)

        for rule in self.grammar:
            match = rule.match(content)
            if match is None:
                continue

            try:
                amount, currency = self.validate(match, message)
            except IntentValidationError as e:
                logger.warning(
                    f"Grammar rule '{rule.name}' matched but failed validation: {e}",
                    extra={"email_id": message.email_id},
                )
                continue

            intent = TransactionIntent(
                amount=amount,
                currency=currency,
                sender=message.sender.lower(),
                variant=match.variant,
                email_id=message.email_id,
                recipient=match.recipient.lower() if match.recipient else None,
                call_sign=match.call_sign,
                candidate_recipients=self.candidate_recipients(message),
                message_id=message.message_id,
                rule=rule.name,
            )
            logger.info(
                f"Extracted {intent.variant.value} intent via rule '{rule.name}': "
                f"{intent.amount} {intent.currency}",
                extra={"email_id": message.email_id, "sender": intent.sender},
            )
            return intent

        return None

    def extract_balance_inquiry(
        self,
        message: IncomingMessage,
        content: Optional[str] = None,
    ) -> Optional[BalanceInquiryIntent]:
        """Match the balance-inquiry phrase.

        Accepted only when every To address is an operator address; an inquiry
        that also addresses a third party is ignored.
        """
        if content is None:
            content = self.searchable_content(message)

        if not BALANCE_INQUIRY_PATTERN.search(content):
            return None

        if not message.to or not all(addr in self.operator_addresses for addr in message.to):
            logger.info(
                "Balance inquiry phrase found but To contains non-operator addresses, ignoring",
                extra={"email_id": message.email_id},
            )
            return None

        return BalanceInquiryIntent(
            sender=message.sender.lower(),
            email_id=message.email_id,
            message_id=message.message_id,
        )

    def validate(self, match: GrammarMatch, message: IncomingMessage):
        """Validation gate applied uniformly to every grammar match.

        Returns:
            Tuple[Decimal, str]: Parsed amount and upper-case currency

        Raises:
            IntentValidationError: Unsupported currency, non-positive amount or
                no operator address in To/Cc
        """
        currency = match.currency_text.upper()
        if currency not in self.supported_currencies:
            raise IntentValidationError(f"Unsupported currency: {currency}")

        try:
            amount = Decimal(match.amount_text)
        except InvalidOperation:
            raise IntentValidationError(f"Invalid amount: {match.amount_text}")
        if not amount.is_finite() or amount <= 0:
            raise IntentValidationError(f"Amount must be positive: {match.amount_text}")

        if not self.addresses_operator(message):
            raise IntentValidationError("No operator address in To or Cc")

        return amount, currency

    def addresses_operator(self, message: IncomingMessage) -> bool:
        return any(addr in self.operator_addresses for addr in (*message.to, *message.cc))

    def candidate_recipients(self, message: IncomingMessage):
        """Non-operator To addresses in header order."""
        return tuple(addr for addr in message.to if addr not in self.operator_addresses)


__all__ = ["IntentParser", "IntentVariant", "html_to_text"]
