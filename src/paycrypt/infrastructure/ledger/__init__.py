"""Ledger gateway adapters."""

from .jsonrpc_client import JsonRpcLedgerClient, classify_transfer_error
from .memory_client import InMemoryLedgerClient

__all__ = ["JsonRpcLedgerClient", "InMemoryLedgerClient", "classify_transfer_error"]
