"""
Spreadsheet sync audit log.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from starforge.infra.database import Base


class SheetsSyncLog(Base):
    """One guild spreadsheet sync run, written by the sheets_sync job."""

    __tablename__ = "sheets_sync_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    guild_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sheet_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    range: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rows_sent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_sheets_sync_logs_guild_id", "guild_id"),)
