"""create queue_jobs and sheets_sync_logs tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:12:41.118203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "queue_jobs",
        sa.Column(
            "id",
            sa.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("type", sa.String(100), nullable=False, comment="Job type identifier"),
        sa.Column(
            "payload",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
            comment="Job-specific parameters",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|completed|failed",
        ),
        sa.Column(
            "priority",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Lower value is claimed first",
        ),
        sa.Column(
            "attempts",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Number of claims made",
        ),
        sa.Column(
            "max_attempts",
            sa.Integer,
            nullable=False,
            server_default="3",
            comment="Attempt ceiling, enforced only by the resubmit retry policy",
        ),
        sa.Column(
            "run_after",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Not claimable before this time",
        ),
        # Worker bookkeeping
        sa.Column("locked_by", sa.Text, nullable=True, comment="Worker that claimed the job"),
        sa.Column(
            "locked_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When the job was claimed",
        ),
        # Outcome
        sa.Column("result", postgresql.JSONB, nullable=True, comment="Handler result data"),
        sa.Column(
            "last_error",
            sa.Text,
            nullable=True,
            comment="Error message, set only on failed jobs",
        ),
        sa.Column(
            "retry_of",
            sa.UUID(as_uuid=True),
            nullable=True,
            comment="Failed job this row resubmits",
        ),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("processed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="queue_jobs_status_check",
        ),
        sa.CheckConstraint("attempts >= 0", name="queue_jobs_attempts_check"),
        sa.CheckConstraint("max_attempts >= 1", name="queue_jobs_max_attempts_check"),
    )

    # Claim selection scans (status, priority, created_at)
    op.create_index("ix_queue_jobs_status", "queue_jobs", ["status"])
    op.create_index(
        "ix_queue_jobs_claim", "queue_jobs", ["status", "priority", "created_at"]
    )
    op.create_index("ix_queue_jobs_type_status", "queue_jobs", ["type", "status"])

    op.create_table(
        "sheets_sync_logs",
        sa.Column(
            "id",
            sa.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("guild_id", sa.String(100), nullable=False),
        sa.Column("sheet_id", sa.String(255), nullable=True),
        sa.Column("range", sa.String(255), nullable=True),
        sa.Column("rows_sent", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="unknown"),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finished_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_sheets_sync_logs_guild_id", "sheets_sync_logs", ["guild_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("sheets_sync_logs")
    op.drop_table("queue_jobs")
