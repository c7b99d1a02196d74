"""SMTP Mail Sender - MailSenderPort implementation using smtplib.

smtplib is blocking, so each delivery runs in a worker thread. One connection
per message; no pooling and no retries.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid, parseaddr
from typing import Optional

from ...domain.exceptions import NotificationDeliveryError
from ...domain.ports.mail_port import MailSenderPort, OutboundMail

logger = logging.getLogger(__name__)


class SMTPMailSender(MailSenderPort):
    """Deliver notifications through an SMTP relay.

    Example:
        sender = SMTPMailSender(
            host="smtp.example.com",
            port=587,
            username="pay@paycrypt.example",
            password="...",
            from_address="PayCrypt <pay@paycrypt.example>",
        )
        message_id = await sender.send(mail)
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_starttls: bool = True,
        from_address: str = "PayCrypt <pay@paycrypt.example>",
        reply_to: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_starttls = use_starttls
        self.from_address = from_address
        self.reply_to = reply_to
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SMTPMailSender":
        return cls(
            host=settings.OUTGOING_SMTP_HOST,
            port=settings.OUTGOING_SMTP_PORT,
            username=settings.OUTGOING_SMTP_USER,
            password=settings.OUTGOING_SMTP_PASS,
            use_starttls=settings.OUTGOING_SMTP_STARTTLS,
            from_address=settings.OUTGOING_EMAIL_FROM,
            reply_to=settings.OUTGOING_EMAIL_REPLY_TO,
            timeout=settings.OUTGOING_SMTP_TIMEOUT_SECONDS,
        )

    def build_message(self, mail: OutboundMail) -> MIMEMultipart:
        """Compose the MIME message (plain text with optional HTML alternative)."""
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_address
        msg["To"] = mail.to
        msg["Subject"] = mail.subject
        msg["Date"] = formatdate(localtime=False)

        domain = parseaddr(self.from_address)[1].partition("@")[2] or None
        msg["Message-ID"] = make_msgid(domain=domain)

        if self.reply_to:
            msg["Reply-To"] = self.reply_to
        if mail.in_reply_to:
            msg["In-Reply-To"] = mail.in_reply_to
            msg["References"] = mail.references or mail.in_reply_to

        msg.attach(MIMEText(mail.text_body, "plain", "utf-8"))
        if mail.html_body:
            msg.attach(MIMEText(mail.html_body, "html", "utf-8"))
        return msg

    def _deliver(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_starttls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, mail: OutboundMail) -> str:
        msg = self.build_message(mail)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryError(mail.to, f"SMTP delivery to {mail.to} failed: {e}")

        logger.info(
            f"Sent notification '{mail.subject}' to {mail.to}",
            extra={"recipient": mail.to},
        )
        return msg["Message-ID"]
