"""Intent extraction: grammar table and parser."""

from .grammar import BALANCE_INQUIRY_PATTERN, TRANSACTION_GRAMMAR, GrammarMatch, GrammarRule
from .intent_parser import IntentParser, html_to_text

__all__ = [
    "BALANCE_INQUIRY_PATTERN",
    "TRANSACTION_GRAMMAR",
    "GrammarMatch",
    "GrammarRule",
    "IntentParser",
    "html_to_text",
]
