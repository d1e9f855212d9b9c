from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.adapters.database.pool import ConnectionPool
from app.api.dependencies import get_connection_pool
from app.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(pool: ConnectionPool = Depends(get_connection_pool)) -> HealthResponse:
    """Health check endpoint.

    Reports the service as up together with a snapshot of the connection
    pool, so operators can see leased and idle counts return to baseline.

    Returns:
        HealthResponse: ``status`` and pool counters.
    """

    stats = pool.stats()
    status = "shutting_down" if stats.closed else "ok"
    return HealthResponse(status=status, pool=asdict(stats))
