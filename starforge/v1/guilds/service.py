"""
Guild spreadsheet sync: enqueue helper for API/bot collaborators and the
sync log writer used by the job handler.
"""

import json
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from starforge.config.logging import get_logger
from starforge.infra.database import Database
from starforge.v1.guilds.models import SheetsSyncLog
from starforge.v1.infra.jobs.schemas import JobHandle
from starforge.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)

SHEETS_SYNC_JOB = "sheets_sync"
SHEETS_SYNC_PRIORITY = 100


class SheetsSyncPayload(BaseModel):
    """Payload of a sheets_sync job."""

    guild_id: str = Field(..., min_length=1, description="Guild to export")
    requested_by: str | None = Field(default=None, description="Requesting user")
    range: str | None = Field(default=None, description="Target sheet range")
    sheet_id: str | None = Field(default=None, description="Target spreadsheet")
    force: bool = Field(default=False, description="Sync even if nothing changed")


class GuildSyncService:
    """Service for guild spreadsheet sync jobs."""

    def __init__(self, database: Database, store: JobStore | None = None):
        self.database = database
        self.store = store

    async def enqueue_sync(self, payload: SheetsSyncPayload) -> JobHandle:
        """Queue a sheets_sync job behind interactive work."""
        if self.store is None:
            raise RuntimeError("GuildSyncService was built without a job store")

        job = await self.store.enqueue(
            SHEETS_SYNC_JOB,
            payload.model_dump(mode="json"),
            priority=SHEETS_SYNC_PRIORITY,
        )
        logger.info("sheets_sync_enqueued", job_id=str(job.id), guild_id=payload.guild_id)
        return JobHandle(job_id=job.id, status=job.status)

    async def log_sync(
        self,
        guild_id: str,
        sheet_id: str | None = None,
        sheet_range: str | None = None,
        rows_sent: int | None = None,
        status: str | None = None,
        error: Any = None,
        started_at: datetime | None = None,
    ) -> UUID:
        """Record one sync run and return the log row id."""
        now = datetime.now(UTC)
        row = SheetsSyncLog(
            guild_id=guild_id,
            sheet_id=sheet_id,
            range=sheet_range,
            rows_sent=rows_sent,
            status=status or "unknown",
            error=json.dumps(error, default=str) if error is not None else None,
            started_at=started_at or now,
            finished_at=now,
        )
        async with self.database.SessionLocal() as session:
            async with session.begin():
                session.add(row)
        return row.id
