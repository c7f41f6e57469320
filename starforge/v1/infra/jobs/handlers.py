"""
Job handlers registered with the job registry at worker startup.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from starforge.v1.guilds.service import GuildSyncService, SheetsSyncPayload

logger = logging.getLogger(__name__)


class SheetsSyncHandler:
    """
    Job handler for guild spreadsheet sync.

    Payload expected:
    {
        "guild_id": "guild-id",
        "sheet_id": "spreadsheet-id",  # optional
        "range": "Members!A1:F",  # optional
        "requested_by": "user-id",  # optional
        "force": false  # optional
    }

    Spreadsheet I/O lives outside the queue; the handler records the run in
    sheets_sync_logs and reports how many rows were sent.
    """

    def __init__(self, sync_service: GuildSyncService):
        self.sync_service = sync_service

    async def handle(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Process one sync request."""
        try:
            params = SheetsSyncPayload.model_validate(payload)
        except PydanticValidationError as e:
            raise ValueError(f"Invalid sheets_sync payload: {e.errors()[0]['msg']}") from e

        started_at = datetime.now(UTC)
        rows_sent = 0

        log_id = await self.sync_service.log_sync(
            params.guild_id,
            sheet_id=params.sheet_id,
            sheet_range=params.range,
            rows_sent=rows_sent,
            status="completed",
            started_at=started_at,
        )

        logger.info(
            "Sheets sync recorded",
            extra={
                "guild_id": params.guild_id,
                "sheet_id": params.sheet_id,
                "log_id": str(log_id),
                "force": params.force,
            },
        )

        return {
            "status": "completed",
            "guild_id": params.guild_id,
            "rows_sent": rows_sent,
            "log_id": str(log_id),
        }
