"""Health check utilities for PayCrypt.

Checks the components the pipeline cannot work without: the archive
directory and the admission counter store.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ..domain.ports.archive_port import ArchiveStorePort
from ..domain.ports.counter_port import KeyedCounterStore
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


async def check_archive_health(archive: ArchiveStorePort) -> ComponentHealth:
    """Check the archive is readable and report its usage.

    Usage above 90% of capacity is reported as degraded.
    """
    try:
        start = time.time()
        stats = await archive.stats()
        latency_ms = (time.time() - start) * 1000

        status = HealthStatus.HEALTHY if stats.usage_ratio <= 0.9 else HealthStatus.DEGRADED
        return ComponentHealth(
            status=status,
            message=f"{stats.count} entries, {stats.usage_ratio:.1%} of capacity",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        logger.error(f"Archive health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Archive error: {str(e)}",
        )


def check_counter_store_health(counters: KeyedCounterStore) -> ComponentHealth:
    """Check the admission counter store is reachable."""
    try:
        start = time.time()
        counters.ping()
        latency_ms = (time.time() - start) * 1000

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Counter store OK",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        logger.error(f"Counter store health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Counter store error: {str(e)}",
        )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall system health from component health.

    Args:
        components: Dictionary of component name to health status

    Returns:
        HealthStatus: UNHEALTHY if any component is unhealthy, DEGRADED if
            any is degraded, HEALTHY otherwise
    """
    statuses = [comp.status for comp in components.values()]

    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
