"""
Queue job model backing the worker loop.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from starforge.infra.database import Base


class JobStatus(str, Enum):
    """Job status enumeration.

    Rows only move pending -> processing -> completed | failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(UTC)


class Job(Base):
    """
    One unit of asynchronous work.

    The table doubles as the queue: workers claim rows atomically and
    record the outcome on the same row, which is kept for inspection.
    """

    __tablename__ = "queue_jobs"

    # Core fields
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Job type identifier"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        server_default="{}",
        comment="Job-specific parameters",
    )

    # Job state
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.PENDING.value,
        server_default=JobStatus.PENDING.value,
        comment="Job status: pending|processing|completed|failed",
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Lower value is claimed first",
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Number of claims made",
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=3,
        server_default="3",
        comment="Attempt ceiling, enforced only by the resubmit retry policy",
    )
    run_after: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Not claimable before this time",
    )

    # Worker bookkeeping
    locked_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Worker that claimed the job"
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When the job was claimed"
    )

    # Outcome
    result: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument, nullable=True, comment="Handler result data"
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Error message, set only on failed jobs"
    )
    retry_of: Mapped[UUID | None] = mapped_column(
        Uuid, nullable=True, comment="Failed job this row resubmits"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="queue_jobs_status_check",
        ),
        CheckConstraint("attempts >= 0", name="queue_jobs_attempts_check"),
        CheckConstraint("max_attempts >= 1", name="queue_jobs_max_attempts_check"),
        Index("ix_queue_jobs_status", "status"),
        Index("ix_queue_jobs_claim", "status", "priority", "created_at"),
        Index("ix_queue_jobs_type_status", "type", "status"),
    )

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def has_attempts_left(self) -> bool:
        return self.attempts < self.max_attempts

    def __repr__(self) -> str:
        return f"<Job {self.id} type={self.type} status={self.status} attempts={self.attempts}>"
