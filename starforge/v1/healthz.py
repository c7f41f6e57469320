from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from starforge.config.settings import Settings, SettingsDep
from starforge.v1.core.exceptions import create_success_response
from starforge.v1.infra.jobs.routes import get_job_store
from starforge.v1.infra.jobs.store import JobStore

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Job queue status."""

    queue_depth: int = 0
    failed_jobs: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, store: JobStore = Depends(get_job_store)
):
    """Health check endpoint with database and queue status."""

    db_health = await _check_database_health(store)

    queue_health = None
    if db_health.connected:
        stats = await store.get_stats()
        queue_health = QueueHealth(
            queue_depth=stats.queue_depth,
            failed_jobs=stats.by_status.get("failed", 0),
        )

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": db_health.model_dump(),
        "queue": queue_health.model_dump() if queue_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(store: JobStore) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await store.ping()
    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))

    response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
    return DatabaseHealth(connected=True, response_time_ms=round(response_time_ms, 2))
