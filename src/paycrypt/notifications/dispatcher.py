"""Notification dispatch.

Sends the outcome of a workflow to its participants. Each delivery is
independent: a failed sender reply does not stop the recipient notice, and
failures are reported in the DispatchReport instead of being raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..domain.exceptions import NotificationDeliveryError
from ..domain.messages import IncomingMessage
from ..domain.ports.mail_port import MailSenderPort, OutboundMail
from ..domain.results import BalanceInquiryResult, TransactionResult
from ..observability.metrics import notifications_total
from .composer import NotificationComposer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one notification delivery."""
    recipient: str
    delivered: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class DispatchReport:
    """Per-participant delivery results. None means no notification was due."""
    sender: Optional[DeliveryOutcome] = None
    recipient: Optional[DeliveryOutcome] = None

    @property
    def all_delivered(self) -> bool:
        return all(
            outcome.delivered
            for outcome in (self.sender, self.recipient)
            if outcome is not None
        )


class NotificationDispatcher:
    """Compose and deliver notifications for pipeline results."""

    def __init__(self, mail_sender: MailSenderPort, composer: NotificationComposer):
        self.mail_sender = mail_sender
        self.composer = composer

    async def _deliver(self, mail: OutboundMail, role: str) -> DeliveryOutcome:
        try:
            message_id = await self.mail_sender.send(mail)
        except NotificationDeliveryError as e:
            notifications_total.labels(role=role, status="failed").inc()
            logger.error(
                f"Failed to deliver {role} notification: {e}",
                extra={"recipient": mail.to},
            )
            return DeliveryOutcome(recipient=mail.to, delivered=False, error=str(e))

        notifications_total.labels(role=role, status="sent").inc()
        return DeliveryOutcome(recipient=mail.to, delivered=True, message_id=message_id)

    async def notify_transaction(
        self,
        message: IncomingMessage,
        result: TransactionResult,
    ) -> DispatchReport:
        """Notify the sender, and the recipient when known and distinct."""
        sender_outcome = await self._deliver(
            self.composer.transaction_sender(message, result), role="sender"
        )

        recipient_outcome = None
        if result.recipient and result.recipient.lower() != result.sender.lower():
            recipient_outcome = await self._deliver(
                self.composer.transaction_recipient(message, result), role="recipient"
            )
        else:
            logger.info(
                "No separate recipient to notify",
                extra={"email_id": message.email_id, "outcome": result.outcome.value},
            )

        return DispatchReport(sender=sender_outcome, recipient=recipient_outcome)

    async def notify_balance_inquiry(
        self,
        message: IncomingMessage,
        result: BalanceInquiryResult,
    ) -> DispatchReport:
        sender_outcome = await self._deliver(
            self.composer.balance_inquiry(message, result), role="sender"
        )
        return DispatchReport(sender=sender_outcome)
