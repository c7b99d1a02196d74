"""Notification composition with Jinja2 templates.

Renders the HTML and plain-text bodies of the three notifications the
pipeline sends: transaction confirmation to the sender, payment notice to the
recipient, and balance inquiry reply.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ..domain.messages import IncomingMessage
from ..domain.ports.mail_port import OutboundMail
from ..domain.results import BalanceInquiryResult, TransactionOutcome, TransactionResult

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# outcome -> (status label, banner colour)
STATUS_STYLES: Dict[TransactionOutcome, Tuple[str, str]] = {
    TransactionOutcome.SENDER_WALLET_CREATED: ("Wallet Created", "#ffc107"),
    TransactionOutcome.SENDER_WALLET_CREATION_FAILED: ("Wallet Creation Failed", "#dc3545"),
    TransactionOutcome.INSUFFICIENT_FUNDS: ("Insufficient Funds", "#fd7e14"),
    TransactionOutcome.RECEIVER_UNRESOLVED: ("Recipient Not Found", "#fd7e14"),
    TransactionOutcome.RECEIVER_WALLET_CREATION_FAILED: ("Recipient Wallet Creation Failed", "#dc3545"),
    TransactionOutcome.LEDGER_ERROR: ("Ledger Unavailable", "#dc3545"),
    TransactionOutcome.TRANSFER_COMPLETED: ("Transfer Completed", "#28a745"),
    TransactionOutcome.TRANSFER_FAILED: ("Transfer Failed", "#dc3545"),
    TransactionOutcome.BALANCE_RETRIEVED: ("Balance Retrieved", "#28a745"),
    TransactionOutcome.WALLET_CREATED_EMPTY: ("New Wallet Created", "#ffc107"),
    TransactionOutcome.BALANCE_INQUIRY_FAILED: ("Balance Inquiry Failed", "#dc3545"),
}


def status_style(outcome: TransactionOutcome) -> Tuple[str, str]:
    return STATUS_STYLES.get(outcome, (outcome.value.replace("_", " ").title(), "#6c757d"))


class NotificationComposer:
    """Build OutboundMail objects from pipeline results.

    Example:
        composer = NotificationComposer(explorer_tx_url="https://explorer/tx/{ref}")
        mail = composer.transaction_sender(message, result)
    """

    def __init__(self, explorer_tx_url: Optional[str] = None, templates_dir: Path = TEMPLATES_DIR):
        self.explorer_tx_url = explorer_tx_url
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def explorer_link(self, ref: Optional[str]) -> Optional[str]:
        if not ref or not self.explorer_tx_url:
            return None
        return self.explorer_tx_url.format(ref=ref)

    def _render(self, name: str, context: Dict[str, Any]) -> Tuple[str, str]:
        html = self.env.get_template(f"{name}.html").render(**context)
        text = self.env.get_template(f"{name}.txt").render(**context)
        return html, text

    def _transaction_context(self, message: IncomingMessage, result: TransactionResult) -> Dict[str, Any]:
        label, color = status_style(result.outcome)
        return {
            "result": result,
            "outcome": result.outcome.value,
            "status_label": label,
            "status_color": color,
            "sender_address": result.sender_wallet.address if result.sender_wallet else None,
            "receiver_address": result.receiver_wallet.address if result.receiver_wallet else None,
            "explorer_url": self.explorer_link(result.ledger_ref),
            "original_subject": message.subject,
        }

    def transaction_sender(self, message: IncomingMessage, result: TransactionResult) -> OutboundMail:
        """Reply to the sender, threaded on the original message."""
        html, text = self._render("transaction_sender", self._transaction_context(message, result))
        verdict = "Processed" if result.success else "Status"
        return OutboundMail(
            to=result.sender,
            subject=f"Re: {message.subject} - Transaction {verdict}",
            text_body=text,
            html_body=html,
            in_reply_to=message.message_id,
            references=message.message_id,
        )

    def transaction_recipient(self, message: IncomingMessage, result: TransactionResult) -> OutboundMail:
        html, text = self._render("transaction_recipient", self._transaction_context(message, result))
        verdict = "Received" if result.success else "Pending"
        return OutboundMail(
            to=result.recipient,
            subject=f"Payment Notification - {verdict}",
            text_body=text,
            html_body=html,
        )

    def balance_inquiry(self, message: IncomingMessage, result: BalanceInquiryResult) -> OutboundMail:
        label, color = status_style(result.outcome)
        html, text = self._render("balance_inquiry", {
            "result": result,
            "outcome": result.outcome.value,
            "status_label": label,
            "status_color": color,
            "wallet_address": result.wallet.address if result.wallet else None,
            "explorer_url": self.explorer_link(result.ledger_ref),
        })
        return OutboundMail(
            to=result.sender,
            subject=f"Re: {message.subject or 'Balance Inquiry'}",
            text_body=text,
            html_body=html,
            in_reply_to=message.message_id,
            references=message.message_id,
        )
