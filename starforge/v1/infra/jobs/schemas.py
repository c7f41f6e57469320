"""
Job queue Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from starforge.v1.infra.jobs.models import JobStatus


class JobCreate(BaseModel):
    """Schema for creating a new job."""

    type: str = Field(..., max_length=100, description="Job type identifier")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    priority: int | None = Field(
        default=None, description="Priority (lower is claimed first)"
    )
    max_attempts: int | None = Field(
        default=None, ge=1, description="Attempt ceiling"
    )
    run_after: datetime | None = Field(
        default=None, description="Earliest time the job may be claimed"
    )

    @field_validator("type")
    @classmethod
    def type_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("type must be a non-empty string")
        return value


class JobHandle(BaseModel):
    """Schema returned to callers of enqueue."""

    job_id: UUID
    status: str


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    payload: dict[str, Any]
    status: str
    priority: int
    attempts: int
    max_attempts: int
    run_after: datetime | None = None

    locked_by: str | None = None
    locked_at: datetime | None = None

    result: dict[str, Any] | None = None
    last_error: str | None = None
    retry_of: UUID | None = None

    created_at: datetime
    processed_at: datetime | None = None
    updated_at: datetime


class JobListFilters(BaseModel):
    """Schema for job listing filters."""

    status: JobStatus | None = Field(default=None, description="Filter by job status")
    type: str | None = Field(default=None, description="Filter by job type")
    limit: int = Field(default=50, ge=1, le=1000, description="Maximum results to return")
    offset: int = Field(default=0, ge=0, description="Results offset for pagination")


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatsResponse(BaseModel):
    """Schema for job statistics."""

    total_jobs: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    queue_depth: int  # pending + processing
