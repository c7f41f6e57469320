from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from starforge.config.settings import Settings, get_settings
from starforge.infra.database import Database, get_database
from starforge.main import create_app
from starforge.v1.core.registries import JobRegistry
from starforge.v1.infra.jobs.store import JobStore

# Import models to ensure they're registered
from starforge.v1.guilds import models as guild_models  # noqa: F401
from starforge.v1.infra.jobs import models as job_models  # noqa: F401


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """File-backed SQLite so concurrent sessions get separate connections."""
    return f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
def test_settings(sqlite_url: str) -> Settings:
    """Settings with short backoffs for loop tests."""
    return Settings(
        database_url=sqlite_url,
        job_poll_interval_s=0.05,
        job_error_backoff_s=0.1,
        worker_id="test-worker",
    )


@pytest.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with all tables for each test."""
    db = Database(test_settings)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database, test_settings: Settings) -> JobStore:
    return JobStore(database, test_settings)


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


class RecordingHandler:
    """Handler that records payloads and returns a canned result or raises."""

    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.payloads: list[dict] = []

    async def handle(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def recording_handler_cls():
    return RecordingHandler


@pytest.fixture
def app(database: Database, test_settings: Settings):
    """Create a test FastAPI application bound to the test database."""
    app = create_app()
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
