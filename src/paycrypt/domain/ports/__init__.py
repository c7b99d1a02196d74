"""Ports (interfaces) implemented by infrastructure adapters."""

from .archive_port import (
    ArchiveEntry,
    ArchiveFilter,
    ArchiveStats,
    ArchiveStorePort,
    ExportedMessage,
    ReclaimReport,
)
from .counter_port import KeyedCounterStore
from .ledger_port import (
    LedgerPort,
    TransferCredential,
    TransferReceipt,
    WalletCreation,
    WalletCredentials,
    WalletLookup,
)
from .mail_port import MailSenderPort, OutboundMail

__all__ = [
    "ArchiveEntry",
    "ArchiveFilter",
    "ArchiveStats",
    "ArchiveStorePort",
    "ExportedMessage",
    "ReclaimReport",
    "KeyedCounterStore",
    "LedgerPort",
    "TransferCredential",
    "TransferReceipt",
    "WalletCreation",
    "WalletCredentials",
    "WalletLookup",
    "MailSenderPort",
    "OutboundMail",
]
