"""
Job queue API endpoints.

Enqueue and status inspection for dashboards and other services.
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from starforge.config.settings import Settings, SettingsDep
from starforge.infra.database import Database, get_database
from starforge.v1.core.exceptions import NotFoundError, create_success_response
from starforge.v1.infra.jobs.models import JobStatus
from starforge.v1.infra.jobs.schemas import (
    JobCreate,
    JobHandle,
    JobListFilters,
    JobListResponse,
    JobResponse,
)
from starforge.v1.infra.jobs.store import JobStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_store(
    database: Database = Depends(get_database),
    settings: Settings = SettingsDep,
) -> JobStore:
    """Dependency injection for the job store."""
    return JobStore(database, settings)


JobStoreDep = Depends(get_job_store)


@router.post("", response_model=dict, status_code=201)
async def enqueue_job(
    job_request: JobCreate,
    store: JobStore = JobStoreDep,
) -> dict[str, Any]:
    """Enqueue a new background job."""

    handle = await store.enqueue_job(job_request)

    logger.info(
        "Job enqueued via API",
        extra={"job_id": str(handle.job_id), "type": job_request.type},
    )

    return create_success_response(data=handle.model_dump(mode="json"))


@router.get("", response_model=dict)
async def list_jobs(
    status: JobStatus | None = Query(default=None, description="Filter by status"),
    type: str | None = Query(default=None, description="Filter by job type"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    store: JobStore = JobStoreDep,
) -> dict[str, Any]:
    """List jobs with filtering and pagination, newest first."""

    filters = JobListFilters(status=status, type=type, limit=limit, offset=offset)
    jobs, total = await store.list_jobs(filters)

    response_data = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )

    return create_success_response(data=response_data.model_dump(mode="json"))


@router.get("/stats/overview", response_model=dict)
async def get_job_stats(store: JobStore = JobStoreDep) -> dict[str, Any]:
    """Get job counts by status and type."""

    stats = await store.get_stats()
    return create_success_response(data=stats.model_dump())


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: UUID, store: JobStore = JobStoreDep) -> dict[str, Any]:
    """Get a specific job by ID."""

    job = await store.get(job_id)
    if not job:
        raise NotFoundError("Job not found", details={"job_id": str(job_id)})

    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.post("/{job_id}/retry", response_model=dict, status_code=201)
async def retry_job(job_id: UUID, store: JobStore = JobStoreDep) -> dict[str, Any]:
    """Resubmit a failed job as a new pending job."""

    job = await store.resubmit(job_id)
    if job is None:
        raise NotFoundError(
            "Job not found or not eligible for retry", details={"job_id": str(job_id)}
        )

    logger.info(
        "Job retried via API",
        extra={"job_id": str(job_id), "retry_job_id": str(job.id)},
    )

    handle = JobHandle(job_id=job.id, status=job.status)
    return create_success_response(data=handle.model_dump(mode="json"))
