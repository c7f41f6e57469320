"""Rich Formatting Utilities for CLI Output"""

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from starforge.v1.infra.jobs.models import Job, JobStatus

console = Console()

STATUS_STYLES = {
    JobStatus.PENDING.value: "yellow",
    JobStatus.PROCESSING.value: "blue",
    JobStatus.COMPLETED.value: "green",
    JobStatus.FAILED.value: "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def _styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _fmt_time(value: Any) -> str:
    return value.isoformat(timespec="seconds") if value else "—"


def create_jobs_table(jobs: list[Job]) -> Table:
    """Create a formatted table for a jobs list"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Priority", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Created", justify="left", style="dim")
    table.add_column("Error", justify="left", style="red")

    for job in jobs:
        table.add_row(
            str(job.id),
            job.type,
            _styled_status(job.status),
            str(job.priority),
            f"{job.attempts}/{job.max_attempts}",
            _fmt_time(job.created_at),
            escape((job.last_error or "—")[:60]),
        )

    return table


def create_job_panel(job: Job) -> Panel:
    """Create a detail panel for a single job"""
    lines = [
        f"• Type: [magenta]{job.type}[/magenta]",
        f"• Status: {_styled_status(job.status)}",
        f"• Priority: {job.priority}",
        f"• Attempts: {job.attempts}/{job.max_attempts}",
        f"• Created: {_fmt_time(job.created_at)}",
    ]
    if job.is_terminal():
        lines.append(f"• Processed: {_fmt_time(job.processed_at)}")
    if job.run_after:
        lines.append(f"• Run after: {_fmt_time(job.run_after)}")
    if job.locked_by:
        lines.append(f"• Claimed by: [cyan]{job.locked_by}[/cyan]")
    if job.retry_of:
        lines.append(f"• Retry of: [cyan]{job.retry_of}[/cyan]")
    if job.last_error:
        lines.append(f"• Last error: [red]{escape(job.last_error)}[/red]")

    lines.append(f"\n[bold]Payload[/bold]\n{escape(json.dumps(job.payload, indent=2, default=str))}")
    if job.result is not None:
        lines.append(f"\n[bold]Result[/bold]\n{escape(json.dumps(job.result, indent=2, default=str))}")

    return Panel(
        "\n".join(lines),
        title=f"Job {job.id}",
        border_style=STATUS_STYLES.get(job.status, "white"),
    )


def create_stats_table(stats: dict[str, Any]) -> Table:
    """Create a table of job counts"""
    table = Table(title="Queue Overview", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="bold")

    table.add_row("Total jobs", str(stats["total_jobs"]))
    table.add_row("Queue depth", str(stats["queue_depth"]))
    for status in JobStatus:
        table.add_row(
            f"  {_styled_status(status.value)}",
            str(stats["by_status"].get(status.value, 0)),
        )
    for job_type, count in sorted(stats["by_type"].items()):
        table.add_row(f"  type: {job_type}", str(count))

    return table
