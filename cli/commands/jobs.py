"""Jobs Commands - Enqueue, inspect and retry queue jobs"""

import asyncio
import json
from uuid import UUID

import typer
from rich.console import Console

from starforge.v1.core.exceptions import StarForgeException
from starforge.v1.infra.jobs.models import JobStatus
from starforge.v1.infra.jobs.schemas import JobListFilters

from ..client.store import open_store
from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    create_stats_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="jobs", help="Job queue inspection and management commands")


def _parse_job_id(job_id: str) -> UUID:
    try:
        return UUID(job_id)
    except ValueError:
        print_error(f"Invalid job ID: {job_id}")
        raise typer.Exit(1) from None


@app.command("enqueue")
def enqueue_job(
    job_type: str = typer.Argument(..., help="Job type (selects the handler)"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON object payload"),
    priority: int | None = typer.Option(None, "--priority", help="Lower runs first"),
    max_attempts: int | None = typer.Option(
        None, "--max-attempts", help="Attempt ceiling"
    ),
):
    """➕ Enqueue a new job"""
    try:
        payload_data = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1) from None

    async def _enqueue():
        async with open_store() as store:
            return await store.enqueue(
                job_type, payload_data, priority=priority, max_attempts=max_attempts
            )

    try:
        job = asyncio.run(_enqueue())
    except StarForgeException as e:
        print_error(f"Failed to enqueue job: {e.message}")
        raise typer.Exit(1) from None

    print_success(f"Enqueued {job.type} job {job.id} (priority {job.priority})")


@app.command("show")
def show_job(job_id: str = typer.Argument(..., help="Job ID to show")):
    """🔍 Show a single job"""
    job_uuid = _parse_job_id(job_id)

    async def _get():
        async with open_store() as store:
            return await store.get(job_uuid)

    job = asyncio.run(_get())
    if job is None:
        print_error(f"Job not found: {job_id}")
        raise typer.Exit(1)

    console.print(create_job_panel(job))


@app.command("list")
def list_jobs(
    status: JobStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    job_type: str | None = typer.Option(None, "--type", "-t", help="Filter by type"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of jobs to show"),
):
    """📋 List jobs, newest first"""
    filters = JobListFilters(status=status, type=job_type, limit=limit)

    async def _list():
        async with open_store() as store:
            return await store.list_jobs(filters)

    jobs, total = asyncio.run(_list())
    if not jobs:
        print_info("No jobs found")
        return

    console.print(create_jobs_table(jobs))
    console.print(f"\n📊 Showing [cyan]{len(jobs)}[/cyan] of [yellow]{total}[/yellow] jobs")


@app.command("stats")
def job_stats():
    """📈 Show queue counts by status and type"""

    async def _stats():
        async with open_store() as store:
            return await store.get_stats()

    stats = asyncio.run(_stats())
    console.print(create_stats_table(stats.model_dump()))


@app.command("retry")
def retry_job(job_id: str = typer.Argument(..., help="Failed job ID to resubmit")):
    """🔁 Resubmit a failed job as a new pending job"""
    job_uuid = _parse_job_id(job_id)

    async def _retry():
        async with open_store() as store:
            return await store.resubmit(job_uuid)

    job = asyncio.run(_retry())
    if job is None:
        print_warning(f"Job {job_id} not found or not failed; nothing resubmitted")
        raise typer.Exit(1)

    print_success(f"Resubmitted as job {job.id}")
