"""
Job registry construction for worker processes.
"""

from starforge.config.logging import get_logger
from starforge.infra.database import Database
from starforge.v1.core.registries import JobRegistry
from starforge.v1.guilds.service import SHEETS_SYNC_JOB, GuildSyncService
from starforge.v1.infra.jobs.handlers import SheetsSyncHandler

logger = get_logger(__name__)


def build_job_registry(database: Database) -> JobRegistry:
    """Register all job handlers and freeze the registry."""

    registry = JobRegistry()

    registry.register(SHEETS_SYNC_JOB, SheetsSyncHandler(GuildSyncService(database)))

    registry.freeze()
    logger.info("job_handlers_registered", registered_handlers=registry.list())
    return registry
