"""MIME parser for inbound payment mail.

Turns raw RFC 5322 bytes into an immutable IncomingMessage: decoded headers,
normalized address lists, plain and HTML bodies, and a Message-ID (synthetic
when the header is missing).
"""

import email
import email.policy
import hashlib
import logging
import uuid
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Iterable, Optional

from ...domain.messages import (
    AddressList,
    ClientInfo,
    IncomingMessage,
    RawAddressHeader,
    SingleAddress,
    normalize_addresses,
)

logger = logging.getLogger(__name__)


def generate_email_id() -> str:
    """New archive identifier for an inbound message."""
    return uuid.uuid4().hex


def parse_mime_message(raw_mime: bytes) -> EmailMessage:
    """Parse raw MIME bytes into an EmailMessage.

    Args:
        raw_mime: Raw MIME message bytes

    Returns:
        EmailMessage: Parsed MIME message

    Raises:
        ValueError: If MIME parsing fails
    """
    try:
        return email.message_from_bytes(raw_mime, policy=email.policy.default)
    except Exception as e:
        logger.error(f"Failed to parse MIME message: {e}")
        raise ValueError(f"Invalid MIME message: {e}")


def generate_synthetic_message_id(msg: EmailMessage) -> str:
    """Deterministic Message-ID for mail missing the header.

    Derived from From/To/Subject/Date so a re-delivered copy of the same
    message gets the same identifier.
    """
    header_hash = hashlib.sha256(
        f"{msg.get('From', '')}{msg.get('To', '')}"
        f"{msg.get('Subject', '')}{msg.get('Date', '')}".encode()
    ).hexdigest()[:16]
    return f"<synthetic-{header_hash}@paycrypt.generated>"


def _header_addresses(msg: EmailMessage, name: str):
    values = [str(value) for value in (msg.get_all(name) or [])]
    return tuple(normalize_addresses(RawAddressHeader(", ".join(values)) if values else None))


def _body_text(msg: EmailMessage, subtype: str) -> str:
    part = msg.get_body(preferencelist=(subtype,))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown or lying charset declaration
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def parse_incoming_message(
    raw: bytes,
    client: ClientInfo,
    envelope_sender: Optional[str] = None,
    envelope_recipients: Iterable[str] = (),
    email_id: Optional[str] = None,
) -> IncomingMessage:
    """Build an IncomingMessage from raw bytes.

    Args:
        raw: Raw RFC 5322 message
        client: Delivering client metadata
        envelope_sender: MAIL FROM address (SMTP path only)
        envelope_recipients: RCPT TO addresses (SMTP path only)
        email_id: Archive identifier; generated when omitted

    Returns:
        IncomingMessage: Immutable parsed message

    Raises:
        ValueError: If the bytes cannot be parsed as MIME
    """
    msg = parse_mime_message(raw)

    from_addresses = normalize_addresses(SingleAddress(str(msg["From"]) if msg["From"] else None))
    envelope_from = normalize_addresses(SingleAddress(envelope_sender))
    sender = (from_addresses or envelope_from or [""])[0]

    message_id = msg.get("Message-ID")
    if message_id:
        message_id = str(message_id).strip()
    else:
        message_id = generate_synthetic_message_id(msg)
        logger.warning(f"Email missing Message-ID, generated synthetic: {message_id}")

    return IncomingMessage(
        email_id=email_id or generate_email_id(),
        raw=raw,
        sender=sender,
        client=client,
        to=_header_addresses(msg, "To"),
        cc=_header_addresses(msg, "Cc"),
        bcc=_header_addresses(msg, "Bcc"),
        subject=str(msg.get("Subject", "") or "").strip(),
        text_body=_body_text(msg, "plain"),
        html_body=_body_text(msg, "html"),
        message_id=message_id,
        envelope_sender=envelope_from[0] if envelope_from else None,
        envelope_recipients=tuple(normalize_addresses(AddressList(list(envelope_recipients)))),
        received_at=datetime.now(timezone.utc),
    )
