"""StarForge Jobs CLI - Main Entry Point"""

import asyncio

import typer
from rich.console import Console

from starforge.config.logging import setup_logging
from starforge.config.settings import settings

from .commands import jobs
from .utils.formatting import print_info

console = Console()

app = typer.Typer(
    name="starforge",
    help="⚒️ StarForge job queue CLI",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")


@app.command()
def worker():
    """⚙️ Run a job worker until SIGINT/SIGTERM"""
    from starforge.v1.infra.jobs.worker import run_worker

    setup_logging(settings, service="worker", worker_id=settings.resolved_worker_id())
    print_info(f"Starting worker against {settings.database_url.split('@')[-1]}")
    exit_code = asyncio.run(run_worker(settings))
    if exit_code:
        raise typer.Exit(exit_code)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
):
    """
    ⚒️ StarForge Jobs CLI

    Run workers and inspect the background job queue.
    """
    if version:
        from . import __version__

        console.print(f"StarForge Jobs CLI v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
