"""
Governor status routes.

Read-only view of a governor's metrics and window usage, plus a metrics reset,
for mounting into an operator-facing FastAPI app. The governor is passed in
explicitly; each router reports on exactly one governor.
"""

import logging

from fastapi import APIRouter

from api_governor.governor import Governor
from api_governor.api.models import GovernorMetricsResponse, MetricsResetResponse, WindowUsage

logger = logging.getLogger(__name__)


def create_governor_router(governor: Governor) -> APIRouter:
    """
    Build a router exposing `governor` under /governor.

    Args:
        governor: The governor whose state is reported

    Returns:
        APIRouter with GET /governor/metrics and POST /governor/metrics/reset
    """
    router = APIRouter(prefix="/governor", tags=["governor"])

    @router.get("/metrics",
                response_model=GovernorMetricsResponse,
                summary="Governor metrics",
                description="Aggregate call metrics, breaker state and window usage")
    async def get_metrics():
        snapshot = governor.metrics_snapshot()
        return GovernorMetricsResponse(
            total_requests=snapshot.total_requests,
            successful_requests=snapshot.successful_requests,
            failed_requests=snapshot.failed_requests,
            rate_limited_requests=snapshot.rate_limited_requests,
            average_response_time_ms=snapshot.average_response_time_ms,
            last_rate_limited_at=snapshot.last_rate_limited_at,
            circuit_breaker_open=snapshot.circuit_breaker_open,
            recommended_delay_ms=governor.recommended_delay_ms(),
            windows={
                name: WindowUsage(**usage)
                for name, usage in governor.window_usage().items()
            }
        )

    @router.post("/metrics/reset", response_model=MetricsResetResponse)
    async def reset_metrics():
        """Zero the aggregate counters; windows and breaker timing are kept."""
        governor.reset_metrics()
        logger.info("Governor metrics reset via API")
        return MetricsResetResponse(status="reset", message="Governor metrics reset")

    return router
