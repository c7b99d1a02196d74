"""Inbound message model and address normalization."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import getaddresses, parseaddr
from typing import List, Optional, Sequence, Tuple, Union

# Structural address check used at the SMTP handshake and by the grammar
EMAIL_ADDRESS_PATTERN = r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"
_EMAIL_ADDRESS_RE = re.compile(rf"^{EMAIL_ADDRESS_PATTERN}$")


def is_valid_address(address: Optional[str]) -> bool:
    """Check that an address is structurally a mailbox (local@domain.tld)."""
    if not address:
        return False
    return bool(_EMAIL_ADDRESS_RE.match(address.strip()))


@dataclass(frozen=True)
class SingleAddress:
    """One address, bare or with a display name ("Bob <bob@x.com>")."""
    value: Optional[str]


@dataclass(frozen=True)
class AddressList:
    """Several addresses, each bare or with a display name."""
    values: Sequence[str]


@dataclass(frozen=True)
class RawAddressHeader:
    """An unparsed header value such as "a@x.com, Bob <b@y.com>"."""
    value: Optional[str]


AddressInput = Union[SingleAddress, AddressList, RawAddressHeader]


def normalize_addresses(source: Optional[AddressInput]) -> List[str]:
    """Turn any address shape into an ordered list of lowercase bare addresses.

    Display names are stripped, empty entries dropped and duplicates removed,
    keeping the first occurrence so To-list order is preserved.

    Examples:
        SingleAddress("Bob <BOB@x.com>") -> ["bob@x.com"]
        AddressList(["a@x.com", "A@x.com"]) -> ["a@x.com"]
        RawAddressHeader("a@x.com, Bob <b@y.com>") -> ["a@x.com", "b@y.com"]
    """
    if source is None:
        return []

    if isinstance(source, SingleAddress):
        candidates = [parseaddr(source.value)[1]] if source.value else []
    elif isinstance(source, AddressList):
        candidates = [parseaddr(value)[1] for value in source.values if value]
    elif isinstance(source, RawAddressHeader):
        candidates = [addr for _, addr in getaddresses([source.value])] if source.value else []
    else:
        raise TypeError(f"Unsupported address input: {type(source).__name__}")

    normalized: List[str] = []
    for candidate in candidates:
        address = candidate.strip().lower()
        if address and address not in normalized:
            normalized.append(address)
    return normalized


@dataclass(frozen=True)
class ClientInfo:
    """Metadata about the client that delivered a message."""
    remote_address: str
    hostname: Optional[str] = None


@dataclass(frozen=True)
class IncomingMessage:
    """A fully received inbound e-mail. Immutable once constructed.

    Attributes:
        email_id: Archive identifier generated at ingestion
        raw: Raw RFC 5322 bytes as received
        sender: Lowercased From address (envelope sender when From is absent)
        envelope_sender: MAIL FROM address, if delivered over SMTP
        envelope_recipients: RCPT TO addresses, if delivered over SMTP
        to / cc / bcc: Lowercased header recipients in header order
        subject: Decoded Subject header
        text_body / html_body: Decoded body parts
        message_id: Message-ID header (synthetic when missing)
        received_at: Receipt timestamp (UTC)
        client: Delivering client metadata
    """
    email_id: str
    raw: bytes
    sender: str
    client: ClientInfo
    to: Tuple[str, ...] = ()
    cc: Tuple[str, ...] = ()
    bcc: Tuple[str, ...] = ()
    subject: str = ""
    text_body: str = ""
    html_body: str = ""
    message_id: Optional[str] = None
    envelope_sender: Optional[str] = None
    envelope_recipients: Tuple[str, ...] = ()
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.raw)

    def archive_metadata(self) -> dict:
        """Envelope fields stored in the archive sidecar."""
        return {
            "from": self.sender,
            "to": list(self.to),
            "cc": list(self.cc),
            "bcc": list(self.bcc),
            "subject": self.subject,
            "messageId": self.message_id,
            "date": self.received_at.isoformat(),
            "envelopeFrom": self.envelope_sender,
            "envelopeTo": list(self.envelope_recipients),
            "clientIP": self.client.remote_address,
            "hostname": self.client.hostname,
        }
