"""
Polling job worker: claims one job at a time, dispatches it by type and
records the outcome.
"""

import asyncio
import random
import signal
import sys
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from starforge.config.logging import get_logger, setup_logging
from starforge.config.settings import RetryPolicy, Settings
from starforge.infra.database import Database
from starforge.v1.core.exceptions import (
    HandlerNotFoundError,
    JobTimeoutError,
    ValidationError,
)
from starforge.v1.core.registries import JobRegistry
from starforge.v1.infra.jobs.models import Job
from starforge.v1.infra.jobs.registry_init import build_job_registry
from starforge.v1.infra.jobs.store import JobStore, encode_result

logger = get_logger(__name__)


class IterationOutcome(str, Enum):
    """What a single worker iteration did."""

    COMPLETED = "completed"
    FAILED = "failed"
    IDLE = "idle"
    FAULT = "fault"


class JobWorker:
    """
    Sequential Postgres-backed job worker.

    Features:
    - Atomic claims (one job in flight per worker process)
    - Registry-based dispatch injected at construction
    - Fixed backoff when the queue is empty and a longer one on faults
    - Cooperative shutdown checked between iterations
    - Optional resubmission of failed jobs and per-job deadline
    """

    def __init__(self, store: JobStore, registry: JobRegistry, settings: Settings):
        self.store = store
        self.registry = registry
        self.settings = settings
        self.worker_id = settings.resolved_worker_id()
        self.running = False
        self.current_job: Job | None = None
        self._shutdown = asyncio.Event()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def request_shutdown(self) -> None:
        """Ask the loop to stop after the job in flight, if any."""
        if not self._shutdown.is_set():
            logger.info(
                "worker_shutdown_requested",
                worker_id=self.worker_id,
                job_in_flight=str(self.current_job.id) if self.current_job else None,
            )
        self._shutdown.set()

    async def run(self) -> None:
        """Run iterations until shutdown, then release store connections."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        logger.info(
            "worker_started",
            worker_id=self.worker_id,
            handlers=self.registry.list(),
            poll_interval_s=self.settings.job_poll_interval_s,
            error_backoff_s=self.settings.job_error_backoff_s,
            retry_policy=self.settings.job_retry_policy.value,
        )

        try:
            while not self._shutdown.is_set():
                try:
                    outcome = await self.run_once()
                except Exception:
                    logger.exception("worker_loop_error", worker_id=self.worker_id)
                    outcome = IterationOutcome.FAULT

                if outcome is IterationOutcome.IDLE:
                    await self._backoff(self.settings.job_poll_interval_s)
                elif outcome is IterationOutcome.FAULT:
                    await self._backoff(self.settings.job_error_backoff_s)
        finally:
            self.running = False
            await self.store.close()
            logger.info("worker_stopped", worker_id=self.worker_id)

    async def run_once(self) -> IterationOutcome:
        """Claim at most one job and process it to completion."""
        try:
            job = await self.store.claim_next(self.worker_id)
        except Exception:
            logger.exception("job_claim_failed", worker_id=self.worker_id)
            return IterationOutcome.FAULT

        if job is None:
            return IterationOutcome.IDLE

        self.current_job = job
        try:
            return await self._process_job(job)
        finally:
            self.current_job = None

    async def _process_job(self, job: Job) -> IterationOutcome:
        job_logger = logger.bind(
            job_id=str(job.id),
            job_type=job.type,
            attempt=job.attempts,
            worker_id=self.worker_id,
        )
        job_logger.info("job_claimed", priority=job.priority)

        try:
            handler = self.registry.get(job.type)
        except HandlerNotFoundError as e:
            job_logger.error("job_handler_not_found", registered=self.registry.list())
            await self.store.mark_failed(job.id, str(e))
            return IterationOutcome.FAILED

        try:
            result = await self._invoke(handler, job)
            if isinstance(result, Exception):
                raise result
        except Exception as e:
            error = str(e) or e.__class__.__name__
            job_logger.exception("job_failed", error=error)
            await self._fail(job, error)
            return IterationOutcome.FAILED

        try:
            document = encode_result(result)
        except ValidationError as e:
            # Never resubmitted
            job_logger.error("job_result_rejected", error=e.message)
            await self.store.mark_failed(job.id, e.message)
            return IterationOutcome.FAILED

        try:
            await self.store.mark_completed(job.id, result=document)
        except (OperationalError, InterfaceError):
            raise
        except SQLAlchemyError as e:
            error = f"Could not record job result: {getattr(e, 'orig', None) or e}"
            job_logger.exception("job_result_rejected", error=error)
            await self.store.mark_failed(job.id, error)
            return IterationOutcome.FAILED

        job_logger.info("job_completed")
        return IterationOutcome.COMPLETED

    async def _invoke(self, handler: Any, job: Job) -> Any:
        call = handler.handle(dict(job.payload or {}))
        if self.settings.job_timeout_s is None:
            return await call

        try:
            async with asyncio.timeout(self.settings.job_timeout_s) as deadline:
                return await call
        except TimeoutError as e:
            # Only our own deadline is reported as a job timeout
            if deadline.expired():
                raise JobTimeoutError(self.settings.job_timeout_s) from e
            raise

    async def _fail(self, job: Job, error: str) -> None:
        await self.store.mark_failed(job.id, error)

        if self.settings.job_retry_policy is not RetryPolicy.RESUBMIT:
            return
        if not job.has_attempts_left():
            logger.warning(
                "job_attempts_exhausted",
                job_id=str(job.id),
                attempts=job.attempts,
                max_attempts=job.max_attempts,
            )
            return

        run_after = self._calculate_retry_time(job.attempts)
        retry = await self.store.resubmit(job.id, run_after=run_after, carry_attempts=True)
        if retry is not None:
            logger.info(
                "job_resubmitted",
                job_id=str(job.id),
                retry_job_id=str(retry.id),
                run_after=run_after.isoformat(),
            )

    def _calculate_retry_time(self, attempt: int) -> datetime:
        """Calculate next retry time with exponential backoff and jitter."""
        base_delay = self.settings.job_retry_backoff_base_s
        max_delay = self.settings.job_retry_max_backoff_s

        # Exponential backoff: base * 2^(attempt - 1)
        delay = min(max_delay, base_delay * (2 ** max(0, attempt - 1)))

        # Add jitter (±25% random variation)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        final_delay = max(0.0, delay + jitter)

        return datetime.now(UTC) + timedelta(seconds=final_delay)

    async def _backoff(self, seconds: float) -> None:
        """Sleep between iterations, waking early on shutdown."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


def install_signal_handlers(worker: JobWorker) -> None:
    """Route SIGINT/SIGTERM to the worker's shutdown flag."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.request_shutdown)
        except NotImplementedError:
            # Windows event loops: fall back to the synchronous handler
            signal.signal(sig, lambda signum, frame: worker.request_shutdown())


async def run_worker(settings: Settings) -> int:
    """Build the worker's collaborators, run until signalled and return an exit code."""
    database = Database(settings)
    try:
        await database.ping()
    except Exception:
        logger.exception("worker_startup_failed", reason="database unavailable")
        await database.close()
        return 1

    store = JobStore(database, settings)
    registry = build_job_registry(database)
    worker = JobWorker(store, registry, settings)
    install_signal_handlers(worker)

    await worker.run()
    return 0


def main() -> None:
    """Process entry point for a standalone worker."""
    from starforge.config.settings import settings

    setup_logging(settings, service="worker", worker_id=settings.resolved_worker_id())
    sys.exit(asyncio.run(run_worker(settings)))


if __name__ == "__main__":
    main()
