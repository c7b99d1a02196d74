"""Service wiring.

build_services() assembles the adapters and workflows from Settings once per
process; FastAPI endpoints reach them through get_services().
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from .config import Settings
from .domain.ports.archive_port import ArchiveStorePort
from .domain.ports.counter_port import KeyedCounterStore
from .domain.ports.ledger_port import LedgerPort
from .domain.ports.mail_port import MailSenderPort
from .infrastructure.counters.memory_counters import InMemoryCounterStore
from .infrastructure.counters.redis_counters import RedisCounterStore
from .infrastructure.ingest.admission import AdmissionController
from .infrastructure.ledger.jsonrpc_client import JsonRpcLedgerClient
from .infrastructure.ledger.memory_client import InMemoryLedgerClient
from .infrastructure.mail.smtp_sender import SMTPMailSender
from .infrastructure.storage.filesystem_archive import FilesystemArchiveStore
from .notifications.composer import NotificationComposer
from .notifications.dispatcher import NotificationDispatcher
from .orchestration.transaction_orchestrator import TransactionOrchestrator
from .parsing.intent_parser import IntentParser
from .pipeline.service import MessagePipeline

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Process-wide services shared by the SMTP listener and the HTTP API."""
    settings: Settings
    counters: KeyedCounterStore
    admission: AdmissionController
    archive: ArchiveStorePort
    ledger: LedgerPort
    mail_sender: MailSenderPort
    pipeline: MessagePipeline

    async def close(self) -> None:
        await self.ledger.close()


def build_counter_store(settings: Settings) -> KeyedCounterStore:
    backend = settings.ADMISSION_BACKEND.lower()
    if backend == "redis":
        return RedisCounterStore.from_url(settings.REDIS_URL)
    if backend == "memory":
        return InMemoryCounterStore()
    raise ValueError(f"Unknown ADMISSION_BACKEND: {settings.ADMISSION_BACKEND}")


def build_ledger(settings: Settings) -> LedgerPort:
    backend = settings.LEDGER_BACKEND.lower()
    if backend == "jsonrpc":
        return JsonRpcLedgerClient.from_settings(settings)
    if backend == "memory":
        logger.warning("Using in-memory ledger: balances are lost on restart")
        return InMemoryLedgerClient.from_settings(settings)
    raise ValueError(f"Unknown LEDGER_BACKEND: {settings.LEDGER_BACKEND}")


def build_services(settings: Settings) -> AppServices:
    """Assemble every adapter and workflow from settings.

    Raises:
        ValueError: Unknown backend names or missing ledger URL
        StorageError: Archive directory cannot be created
    """
    counters = build_counter_store(settings)
    archive = FilesystemArchiveStore.from_settings(settings)
    ledger = build_ledger(settings)
    mail_sender = SMTPMailSender.from_settings(settings)

    pipeline = MessagePipeline(
        parser=IntentParser(
            operator_addresses=settings.operator_addresses,
            supported_currencies=settings.supported_currencies,
        ),
        archive=archive,
        orchestrator=TransactionOrchestrator.from_settings(ledger, settings),
        dispatcher=NotificationDispatcher(
            mail_sender=mail_sender,
            composer=NotificationComposer(explorer_tx_url=settings.EXPLORER_TX_URL),
        ),
    )

    return AppServices(
        settings=settings,
        counters=counters,
        admission=AdmissionController(
            counters,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_messages_per_window=settings.MAX_EMAILS_PER_WINDOW,
            max_connections_per_origin=settings.MAX_CONNECTIONS_PER_ORIGIN,
        ),
        archive=archive,
        ledger=ledger,
        mail_sender=mail_sender,
        pipeline=pipeline,
    )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services
