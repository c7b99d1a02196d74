"""Observability API endpoints: Prometheus metrics and health."""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..dependencies import AppServices, get_services
from .health import (
    HealthStatus,
    check_archive_health,
    check_counter_store_health,
    get_overall_health,
)

router = APIRouter(tags=["Observability"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    include_in_schema=False,
)
def metrics():
    """Expose Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Returns health status of the archive and the admission counter store",
)
async def health_check(services: AppServices = Depends(get_services)):
    """Check health of the archive and the counter store.

    Returns 200 unless a component is unhealthy, then 503.
    """
    components = {
        "archive": await check_archive_health(services.archive),
        "counter_store": check_counter_store_health(services.counters),
    }
    overall_status = get_overall_health(components)

    response_data = {
        "status": overall_status.value,
        "components": {
            name: {
                "status": comp.status.value,
                "message": comp.message,
                "latency_ms": comp.latency_ms,
            }
            for name, comp in components.items()
        },
    }
    status_code = 200 if overall_status != HealthStatus.UNHEALTHY else 503
    return JSONResponse(content=response_data, status_code=status_code)
