"""Direct job store access for CLI commands"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starforge.config.settings import settings
from starforge.infra.database import Database
from starforge.v1.infra.jobs.store import JobStore


@asynccontextmanager
async def open_store() -> AsyncIterator[JobStore]:
    """Yield a job store for one command and release its connections after."""
    database = Database(settings)
    try:
        yield JobStore(database, settings)
    finally:
        await database.close()
