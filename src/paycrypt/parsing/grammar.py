"""Transaction and balance-inquiry grammar.

The grammar is an ordered table of rules. Each rule pairs a regular expression
with an extractor that turns a match into a GrammarMatch; rules are tried in
ascending priority against the lowercased subject + body, and validation is
applied by the parser, not here.
"""

import re
from dataclasses import dataclass
from typing import Callable, Match, Optional, Pattern, Tuple

from ..domain.intents import IntentVariant
from ..domain.messages import EMAIL_ADDRESS_PATTERN

_AMOUNT = r"(\d+(?:\.\d+)?)"
_CURRENCY = r"(\w+)"
_RECIPIENT = rf"({EMAIL_ADDRESS_PATTERN})"
_CALL_SIGN = r"([a-z0-9][a-z0-9._-]*)"


@dataclass(frozen=True)
class GrammarMatch:
    """Raw fields captured by a rule, before validation."""
    rule: str
    variant: IntentVariant
    amount_text: str
    currency_text: str
    recipient: Optional[str] = None
    call_sign: Optional[str] = None


@dataclass(frozen=True)
class GrammarRule:
    """One grammar form.

    Attributes:
        name: Rule identifier, recorded on the resulting intent
        priority: Lower values are tried first
        pattern: Compiled expression applied to lowercased content
        extractor: Builds a GrammarMatch from a regex match
    """
    name: str
    priority: int
    pattern: Pattern[str]
    extractor: Callable[[str, Match[str]], GrammarMatch]

    def match(self, content: str) -> Optional[GrammarMatch]:
        found = self.pattern.search(content)
        if not found:
            return None
        return self.extractor(self.name, found)


def _extract_call_sign(name: str, found: Match[str]) -> GrammarMatch:
    return GrammarMatch(
        rule=name,
        variant=IntentVariant.TRANSFER_WITH_CALL_SIGN,
        amount_text=found.group(1),
        currency_text=found.group(2),
        call_sign=found.group(3).rstrip("."),
    )


def _extract_recipient(name: str, found: Match[str]) -> GrammarMatch:
    return GrammarMatch(
        rule=name,
        variant=IntentVariant.TRANSFER,
        amount_text=found.group(1),
        currency_text=found.group(2),
        recipient=found.group(3),
    )


def _recipient_rule(name: str, priority: int, verb: str) -> GrammarRule:
    return GrammarRule(
        name=name,
        priority=priority,
        pattern=re.compile(rf"\b{verb}\s+{_AMOUNT}\s+{_CURRENCY}\s+to\s+{_RECIPIENT}"),
        extractor=_extract_recipient,
    )


# "send 5 dot: alpha-one" / "pay 1.5 usdc: rent-march"
CALL_SIGN_RULE = GrammarRule(
    name="call_sign",
    priority=10,
    pattern=re.compile(rf"\b(?:send|transfer|pay)\s+{_AMOUNT}\s+{_CURRENCY}\s*:\s*{_CALL_SIGN}"),
    extractor=_extract_call_sign,
)

TRANSACTION_GRAMMAR: Tuple[GrammarRule, ...] = tuple(sorted(
    (
        CALL_SIGN_RULE,
        # "send 0.1 pyusd to bob@example.com"
        _recipient_rule("send_to", 20, "send"),
        # "transfer 0.5 btc to user@domain.com"
        _recipient_rule("transfer_to", 30, "transfer"),
        # "pay 100 usdc to john@example.com"
        _recipient_rule("pay_to", 40, "pay"),
    ),
    key=lambda rule: rule.priority,
))

BALANCE_INQUIRY_PATTERN: Pattern[str] = re.compile(r"\bwhat\s+is\s+my\s+balance\b")
