"""Per-origin admission control for inbound SMTP sessions.

Two limits are enforced for each origin address:
- a sliding window of accepted sessions (MAX_EMAILS_PER_WINDOW per window)
- concurrently open sessions (MAX_CONNECTIONS_PER_ORIGIN)

Counter state lives behind the KeyedCounterStore port so the same controller
works with the in-process table or with Redis.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ...domain.ports.counter_port import KeyedCounterStore
from ...observability.metrics import admission_rejections_total

logger = logging.getLogger(__name__)

REASON_RATE_LIMITED = "rate_limited"
REASON_TOO_MANY_CONNECTIONS = "too_many_connections"


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of an admission check."""
    admitted: bool
    reason: Optional[str] = None

    @property
    def reply(self) -> str:
        """SMTP reply sent to a rejected client."""
        if self.reason == REASON_TOO_MANY_CONNECTIONS:
            return "421 4.7.0 Too many connections from your address, try again later"
        return "421 4.7.0 Rate limit exceeded, try again later"


class AdmissionController:
    """Admit or reject sessions per origin.

    Every admitted session holds one connection slot until release() is
    called; release() must be called exactly once per admitted session,
    whatever the pipeline outcome.
    """

    def __init__(
        self,
        counters: KeyedCounterStore,
        window_seconds: float = 60,
        max_messages_per_window: int = 100,
        max_connections_per_origin: int = 10,
    ):
        self.counters = counters
        self.window_seconds = window_seconds
        self.max_messages_per_window = max_messages_per_window
        self.max_connections_per_origin = max_connections_per_origin

    def admit(self, origin: str) -> AdmissionDecision:
        """Check both limits and take a connection slot when admitted.

        Args:
            origin: Remote address of the client

        Returns:
            AdmissionDecision: admitted=True, or the rejection reason
        """
        if not self.counters.acquire(origin, self.max_connections_per_origin):
            return self._reject(origin, REASON_TOO_MANY_CONNECTIONS)

        if not self.counters.hit_window(origin, self.max_messages_per_window, self.window_seconds):
            self.counters.release(origin)
            return self._reject(origin, REASON_RATE_LIMITED)

        return AdmissionDecision(admitted=True)

    def release(self, origin: str) -> None:
        """Return the connection slot taken by admit()."""
        self.counters.release(origin)

    def open_connections(self, origin: str) -> int:
        return self.counters.current(origin)

    def _reject(self, origin: str, reason: str) -> AdmissionDecision:
        admission_rejections_total.labels(reason=reason).inc()
        logger.warning(
            f"Rejected session from {origin}: {reason}",
            extra={"origin": origin},
        )
        return AdmissionDecision(admitted=False, reason=reason)
