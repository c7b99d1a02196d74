"""Pytest fixtures for PayCrypt tests.

Provides reusable test fixtures for:
- Raw RFC 5322 message builders and parsed IncomingMessage objects
- In-memory ledger with funded wallets
- Recording mail sender (optionally failing for chosen recipients)
- Filesystem archive in tmp_path with a deterministic stepping clock
- A fully wired MessagePipeline

Usage:
    @pytest.mark.asyncio
    async def test_transfer(pipeline, ledger, raw_email):
        await ledger.register("alice@example.com", Decimal("10"))
        report = await pipeline.process(raw_email(...), ClientInfo("127.0.0.1"))
"""

import os
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import List, Optional, Sequence

# Keep tests independent of a developer's .env and of the module-level app
os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("SMTP_ENABLED", "false")
os.environ.setdefault("ARCHIVE_RECLAIM_IN_PROCESS", "false")
os.environ.setdefault("LOG_JSON", "false")

import pytest

from paycrypt.domain.exceptions import NotificationDeliveryError
from paycrypt.domain.messages import ClientInfo
from paycrypt.domain.ports.ledger_port import TransferCredential
from paycrypt.domain.ports.mail_port import MailSenderPort, OutboundMail
from paycrypt.infrastructure.counters.memory_counters import InMemoryCounterStore
from paycrypt.infrastructure.ingest.mime_parser import parse_incoming_message
from paycrypt.infrastructure.ledger.memory_client import InMemoryLedgerClient
from paycrypt.infrastructure.storage.filesystem_archive import FilesystemArchiveStore
from paycrypt.notifications.composer import NotificationComposer
from paycrypt.notifications.dispatcher import NotificationDispatcher
from paycrypt.orchestration.transaction_orchestrator import TransactionOrchestrator
from paycrypt.parsing.intent_parser import IntentParser
from paycrypt.pipeline.service import MessagePipeline

OPERATOR = "pay@paycrypt.example"
CURRENCIES = {"DOT", "PYUSD", "USDC", "BTC"}


class SteppingClock:
    """Clock returning strictly increasing UTC datetimes."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2025, 1, 31, 9, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FakeClock:
    """Monotonic-style float clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class RecordingMailSender(MailSenderPort):
    """MailSenderPort that records messages instead of sending them."""

    def __init__(self, failing_recipients: Sequence[str] = ()):
        self.sent: List[OutboundMail] = []
        self.failing_recipients = {addr.lower() for addr in failing_recipients}

    async def send(self, mail: OutboundMail) -> str:
        if mail.to.lower() in self.failing_recipients:
            raise NotificationDeliveryError(mail.to, f"Mailbox unavailable: {mail.to}")
        self.sent.append(mail)
        return f"<sent-{len(self.sent)}@test.local>"

    def sent_to(self, address: str) -> List[OutboundMail]:
        return [mail for mail in self.sent if mail.to == address]


def build_raw_email(
    sender: str = "alice@example.com",
    to: Sequence[str] = (OPERATOR,),
    cc: Sequence[str] = (),
    subject: str = "Payment",
    body: Optional[str] = "Hello",
    html: Optional[str] = None,
    message_id: Optional[str] = "<msg-1@example.com>",
) -> bytes:
    msg = EmailMessage()
    msg["From"] = sender
    if to:
        msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    msg["Subject"] = subject
    msg["Date"] = "Fri, 31 Jan 2025 09:00:00 +0000"
    if message_id:
        msg["Message-ID"] = message_id

    if body is not None:
        msg.set_content(body)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")
    return msg.as_bytes()


@pytest.fixture
def operator() -> str:
    return OPERATOR


@pytest.fixture
def raw_email():
    """Factory building raw message bytes (see build_raw_email)."""
    return build_raw_email


@pytest.fixture
def make_message():
    """Factory building a parsed IncomingMessage."""

    def _make(email_id: str = "testmsg1", client: Optional[ClientInfo] = None, **kwargs):
        return parse_incoming_message(
            build_raw_email(**kwargs),
            client=client or ClientInfo(remote_address="203.0.113.7", hostname="mx.example.com"),
            email_id=email_id,
        )

    return _make


@pytest.fixture
def parser() -> IntentParser:
    return IntentParser(operator_addresses={OPERATOR}, supported_currencies=CURRENCIES)


@pytest.fixture
def ledger() -> InMemoryLedgerClient:
    return InMemoryLedgerClient()


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def counters(fake_clock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=fake_clock)


@pytest.fixture
def archive_factory(tmp_path):
    """Factory building an archive store in tmp_path with a stepping clock."""

    def _make(capacity_bytes: int = 1_000_000, **kwargs) -> FilesystemArchiveStore:
        return FilesystemArchiveStore(
            root=str(tmp_path / "archive"),
            capacity_bytes=capacity_bytes,
            clock=SteppingClock(),
            **kwargs,
        )

    return _make


@pytest.fixture
def archive(archive_factory) -> FilesystemArchiveStore:
    return archive_factory()


@pytest.fixture
def orchestrator(ledger) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        ledger=ledger,
        verification_key="test-vkey",
        transfer_credential=TransferCredential(proof="0xproof", public_signals="0xsignals"),
        operator_addresses={OPERATOR},
    )


@pytest.fixture
def composer() -> NotificationComposer:
    return NotificationComposer(explorer_tx_url="https://explorer.example/tx/{ref}")


@pytest.fixture
def dispatcher(mail_sender, composer) -> NotificationDispatcher:
    return NotificationDispatcher(mail_sender=mail_sender, composer=composer)


@pytest.fixture
def pipeline(parser, archive, orchestrator, dispatcher) -> MessagePipeline:
    return MessagePipeline(
        parser=parser,
        archive=archive,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
    )
