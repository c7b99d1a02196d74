"""Mail Sender Port - Domain interface for outbound notification mail.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OutboundMail:
    """A composed notification ready for delivery.

    Attributes:
        to: Recipient address
        subject: Subject line
        text_body: Plain-text body
        html_body: HTML alternative body
        in_reply_to: Message-ID being answered, for threading
        references: References header value, for threading
    """
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: Optional[str] = None


class MailSenderPort(ABC):
    """Port interface for delivering outbound mail."""

    @abstractmethod
    async def send(self, mail: OutboundMail) -> str:
        """Deliver one message.

        Args:
            mail: Composed message

        Returns:
            str: Message-ID assigned to the delivered message

        Raises:
            NotificationDeliveryError: If the transport refuses or fails
        """
        pass
