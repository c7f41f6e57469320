import pytest
from pydantic import ValidationError

from starforge.config.settings import RetryPolicy, Settings, get_settings


def test_default_settings():
    """Test default settings values."""
    settings = Settings()

    assert settings.app_name == "StarForge Jobs"
    assert settings.version == "1.0.0"
    assert settings.job_poll_interval_s == 2.0
    assert settings.job_error_backoff_s == 5.0
    assert settings.job_default_priority == 0
    assert settings.job_default_max_attempts == 3
    assert settings.job_retry_policy == RetryPolicy.NONE
    assert settings.job_timeout_s is None


def test_production_blocks_sqlite():
    """Test that production environment refuses a SQLite database."""
    with pytest.raises(ValueError, match="SQLite DATABASE_URL is not allowed in production"):
        Settings(environment="production", database_url="sqlite+aiosqlite:///./jobs.db")


def test_production_allows_postgres():
    settings = Settings(
        environment="production",
        database_url="postgresql+asyncpg://jobs:secret@db:5432/starforge",
    )
    assert settings.environment == "production"


def test_development_allows_sqlite():
    settings = Settings(environment="development", database_url="sqlite+aiosqlite:///./jobs.db")
    assert settings.database_url.startswith("sqlite")


@pytest.mark.parametrize(
    "field", ["job_poll_interval_s", "job_error_backoff_s", "job_timeout_s"]
)
def test_intervals_must_be_positive(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


def test_max_attempts_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(job_default_max_attempts=0)


def test_retry_policy_from_environment(monkeypatch):
    monkeypatch.setenv("JOB_RETRY_POLICY", "resubmit")
    monkeypatch.setenv("JOB_POLL_INTERVAL_S", "0.5")

    settings = Settings()

    assert settings.job_retry_policy == RetryPolicy.RESUBMIT
    assert settings.job_poll_interval_s == 0.5


def test_worker_id_resolution():
    """Test explicit worker ids win and a host-pid id is derived otherwise."""
    assert Settings(worker_id="worker-a").resolved_worker_id() == "worker-a"

    derived = Settings(worker_id=None).resolved_worker_id()
    assert derived
    assert derived.rsplit("-", 1)[-1].isdigit()


def test_settings_dependency_injection():
    """Test the get_settings dependency function."""
    settings = get_settings()
    assert isinstance(settings, Settings)
    assert settings.app_name == "StarForge Jobs"
