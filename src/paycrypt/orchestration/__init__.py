"""Transfer and balance-inquiry workflows."""

from .transaction_orchestrator import TransactionOrchestrator

__all__ = ["TransactionOrchestrator"]
