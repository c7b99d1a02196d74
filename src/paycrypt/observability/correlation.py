"""Correlation ID management for log correlation.

A correlation ID ties together every log record produced while handling one
inbound message (its archive email_id) or one HTTP request (its request id).
Stored in a ContextVar so it follows the owning asyncio task.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlation_id (async-safe)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a new unique correlation ID.

    Returns:
        str: UUID v4 string
    """
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context.

    Returns:
        str: Current correlation ID or "no-correlation-id" if not set
    """
    return correlation_id_var.get() or "no-correlation-id"


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID in current context.

    Args:
        correlation_id: Correlation ID to set
    """
    correlation_id_var.set(correlation_id)
