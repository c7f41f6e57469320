"""
Durable job store: the shared queue table and its atomic claim primitive.
"""

from datetime import datetime
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.orm import aliased

from starforge.config.logging import get_logger
from starforge.config.settings import Settings
from starforge.infra.database import Database
from starforge.v1.core.exceptions import ValidationError
from starforge.v1.infra.jobs.models import Job, JobStatus, utcnow
from starforge.v1.infra.jobs.schemas import (
    JobCreate,
    JobHandle,
    JobListFilters,
    JobStatsResponse,
)

logger = get_logger(__name__)


def encode_result(result: Any) -> dict[str, Any] | None:
    """
    Convert a handler result into a JSON document for the result column.

    Datetimes, UUIDs, enums and pydantic models are encoded the way API
    responses encode them.

    Raises:
        ValidationError: if the result is not a mapping or cannot be encoded
    """
    if result is None:
        return None
    if not isinstance(result, Mapping):
        raise ValidationError(
            f"Job result must be a mapping or None, got {type(result).__name__}",
            details={"result_type": type(result).__name__},
        )
    try:
        return jsonable_encoder(dict(result))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Job result is not JSON-serializable: {e}") from e


class JobStore:
    """Enqueue, claim and record outcomes for queue jobs.

    Every method runs in its own short transaction and commits before
    returning, so mutations are immediately visible to other workers.
    """

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any] | None = None,
        priority: int | None = None,
        max_attempts: int | None = None,
        run_after: datetime | None = None,
        *,
        attempts: int = 0,
        retry_of: UUID | None = None,
    ) -> Job:
        """
        Insert a new pending job.

        Args:
            job_type: Handler selector, must be non-empty
            payload: Handler-specific parameters, stored as-is
            priority: Lower is claimed first (defaults from settings)
            max_attempts: Attempt ceiling (defaults from settings)
            run_after: Earliest claim time, None for immediately

        Returns:
            The persisted job
        """
        if not isinstance(job_type, str) or not job_type.strip():
            raise ValidationError("Job type must be a non-empty string")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError(
                "Job payload must be a mapping",
                details={"payload_type": type(payload).__name__},
            )
        if max_attempts is None:
            max_attempts = self.settings.job_default_max_attempts
        if max_attempts < 1:
            raise ValidationError(
                "max_attempts must be at least 1", details={"max_attempts": max_attempts}
            )
        if priority is None:
            priority = self.settings.job_default_priority

        now = utcnow()
        job = Job(
            type=job_type,
            payload=payload,
            status=JobStatus.PENDING.value,
            priority=priority,
            attempts=attempts,
            max_attempts=max_attempts,
            run_after=run_after,
            retry_of=retry_of,
            created_at=now,
            updated_at=now,
        )

        async with self.database.SessionLocal() as session:
            async with session.begin():
                session.add(job)

        logger.info(
            "job_enqueued",
            job_id=str(job.id),
            job_type=job.type,
            priority=job.priority,
            max_attempts=job.max_attempts,
            retry_of=str(retry_of) if retry_of else None,
        )
        return job

    async def enqueue_job(self, job_create: JobCreate) -> JobHandle:
        """Enqueue from a validated request and return the caller-facing handle."""
        job = await self.enqueue(
            job_create.type,
            job_create.payload,
            priority=job_create.priority,
            max_attempts=job_create.max_attempts,
            run_after=job_create.run_after,
        )
        return JobHandle(job_id=job.id, status=job.status)

    async def claim_next(self, worker_id: str | None = None) -> Job | None:
        """
        Atomically claim the highest-precedence eligible job.

        Selection, locking and the status update happen in a single UPDATE
        statement. On PostgreSQL the candidate row is locked with
        FOR UPDATE SKIP LOCKED so concurrent claimers pass over it; the
        outer status guard makes the update a compare-and-swap on backends
        without row locks.

        Returns:
            The claimed job (status processing, attempts incremented) or None
        """
        now = utcnow()
        candidate = aliased(Job)
        next_id = (
            select(candidate.id)
            .where(
                candidate.status == JobStatus.PENDING.value,
                or_(candidate.run_after.is_(None), candidate.run_after <= now),
            )
            .order_by(candidate.priority, candidate.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(Job)
            .where(Job.id == next_id, Job.status == JobStatus.PENDING.value)
            .values(
                status=JobStatus.PROCESSING.value,
                attempts=Job.attempts + 1,
                locked_by=worker_id,
                locked_at=now,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self.database.SessionLocal() as session:
            async with session.begin():
                result = await session.execute(stmt)
                job = result.scalars().first()

        if job is not None:
            logger.debug(
                "job_claim_committed",
                job_id=str(job.id),
                job_type=job.type,
                attempts=job.attempts,
                worker_id=worker_id,
            )
        return job

    async def mark_completed(
        self, job_id: UUID, result: dict[str, Any] | None = None
    ) -> bool:
        """
        Record a successful run.

        Repeating the call on a completed job overwrites the timestamps and is
        not an error. Failed jobs are left untouched.

        Returns:
            True if a row was updated

        Raises:
            ValidationError: if result is not a JSON-encodable mapping
        """
        result = encode_result(result)
        now = utcnow()
        values: dict[str, Any] = {
            "status": JobStatus.COMPLETED.value,
            "last_error": None,
            "processed_at": now,
            "updated_at": now,
        }
        if result is not None:
            values["result"] = result

        updated = await self._transition(
            job_id,
            (JobStatus.PROCESSING.value, JobStatus.COMPLETED.value),
            values,
        )
        if not updated:
            logger.warning("job_complete_skipped", job_id=str(job_id))
        return updated

    async def mark_failed(self, job_id: UUID, error_message: str) -> bool:
        """
        Record a failed run with its error text.

        Returns:
            True if a row was updated
        """
        now = utcnow()
        updated = await self._transition(
            job_id,
            (JobStatus.PROCESSING.value, JobStatus.FAILED.value),
            {
                "status": JobStatus.FAILED.value,
                "last_error": error_message,
                "processed_at": now,
                "updated_at": now,
            },
        )
        if not updated:
            logger.warning("job_fail_skipped", job_id=str(job_id))
        return updated

    async def _transition(
        self, job_id: UUID, from_statuses: tuple[str, ...], values: dict[str, Any]
    ) -> bool:
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status.in_(from_statuses))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.database.SessionLocal() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount > 0

    async def resubmit(
        self,
        job_id: UUID,
        run_after: datetime | None = None,
        carry_attempts: bool = False,
    ) -> Job | None:
        """
        Enqueue a fresh copy of a failed job.

        The failed row keeps its status and error; the new row links back
        through retry_of.

        Args:
            job_id: The failed job
            run_after: Earliest claim time for the copy
            carry_attempts: Start the copy at the failed job's attempt count

        Returns:
            The new pending job, or None if the job is missing or not failed
        """
        original = await self.get(job_id)
        if original is None or original.status != JobStatus.FAILED.value:
            return None

        job = await self.enqueue(
            original.type,
            dict(original.payload or {}),
            priority=original.priority,
            max_attempts=original.max_attempts,
            run_after=run_after,
            attempts=original.attempts if carry_attempts else 0,
            retry_of=original.id,
        )
        logger.info(
            "job_resubmitted",
            job_id=str(job.id),
            retry_of=str(original.id),
            attempts=job.attempts,
        )
        return job

    async def get(self, job_id: UUID) -> Job | None:
        """Get job by ID."""
        async with self.database.SessionLocal() as session:
            return await session.get(Job, job_id)

    async def list_jobs(self, filters: JobListFilters) -> tuple[list[Job], int]:
        """List jobs newest first, returning the page and the total match count."""
        base_query = select(Job)
        if filters.status is not None:
            base_query = base_query.where(Job.status == filters.status.value)
        if filters.type:
            base_query = base_query.where(Job.type == filters.type)

        count_query = select(func.count()).select_from(base_query.subquery())
        jobs_query = (
            base_query.order_by(desc(Job.created_at))
            .offset(filters.offset)
            .limit(filters.limit)
        )

        async with self.database.SessionLocal() as session:
            total = (await session.execute(count_query)).scalar() or 0
            jobs = list((await session.execute(jobs_query)).scalars().all())

        return jobs, total

    async def list_by_status(self, status: JobStatus, limit: int = 50) -> list[Job]:
        jobs, _ = await self.list_jobs(JobListFilters(status=status, limit=limit))
        return jobs

    async def get_stats(self) -> JobStatsResponse:
        """Get job counts by status and type."""
        async with self.database.SessionLocal() as session:
            total_jobs = (await session.execute(select(func.count(Job.id)))).scalar() or 0

            status_result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            by_status = {status: count for status, count in status_result.all()}

            type_result = await session.execute(
                select(Job.type, func.count(Job.id)).group_by(Job.type)
            )
            by_type = {job_type: count for job_type, count in type_result.all()}

        queue_depth = by_status.get(JobStatus.PENDING.value, 0) + by_status.get(
            JobStatus.PROCESSING.value, 0
        )

        return JobStatsResponse(
            total_jobs=total_jobs,
            by_status=by_status,
            by_type=by_type,
            queue_depth=queue_depth,
        )

    async def ping(self) -> None:
        """Raise if the backing database is unreachable."""
        await self.database.ping()

    async def close(self) -> None:
        """Release all pooled connections."""
        await self.database.close()
