"""Main CLI entry point for the YouTube-to-article pipeline."""
import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from execution.api_clients import LLMError, get_chat_client
from execution.rate_limiter import GenerationRateLimiter, RateLimitExceeded
from extraction.models import JobStatus
from generation.job_queue import JobAlreadyClaimed, JobNotReady, JobService, result_filename
from generation.plan_policy import PLAN_POLICIES, get_plan_policy
from ingestion.captions import YouTubeCaptionSource
from ingestion.youtube import InvalidVideoUrl
from monitoring.progress_tracker import ProgressDisplay
from storage.database import Database, JobNotFound
from utils.logger import set_log_level, setup_logger
import config

logger = setup_logger(__name__)
console = Console()

POLL_INTERVAL_SECONDS = 2.0


def build_service(db: Database) -> JobService:
    return JobService(db, get_chat_client(config.LLM_PROVIDER), YouTubeCaptionSource())


async def follow_job(service: JobService, job_id: str) -> JobStatus:
    """Render live progress by polling the job record until it is terminal."""
    display = ProgressDisplay(console)
    with display.create_progress() as progress:
        task = progress.add_task("queued", total=display.total_steps())
        while True:
            view = service.poll_status(job_id)
            progress.update(
                task,
                completed=display.completed_steps(view.phase),
                description=display.describe(view.phase, view.message),
            )
            if view.status != JobStatus.DRAFT:
                return view.status
            await asyncio.sleep(POLL_INTERVAL_SECONDS)


def print_outcome(service: JobService, job_id: str, status: JobStatus) -> None:
    view = service.poll_status(job_id)
    if status == JobStatus.FAILED:
        console.print(f"\n[red]✗ Generation failed: {view.message}[/red]")
        sys.exit(1)

    job = service.get_job(job_id)
    cost = job.meta.get("generationCost", {})
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Job ID", job.id)
    table.add_row("Title", job.title)
    table.add_row("Chapters", str(len(job.meta.get("chapters", []))))
    table.add_row("Words", f"{len(job.markdown.split()):,}")
    table.add_row("Cost (USD)", f"${cost.get('totalUsd', 0):.4f}")
    table.add_row("Unknown-cost calls", str(cost.get("unknownCalls", 0)))

    console.print("\n[bold green]✓ Article complete![/bold green]\n")
    console.print(table)
    console.print(f"\nExport with: [cyan]python main.py export --job-id {job.id}[/cyan]")


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
def cli(verbose):
    """YouTube-to-Article Pipeline - captions in, SEO long-form Markdown out"""
    if verbose:
        set_log_level(logging.DEBUG)


@cli.command()
@click.option('--url', required=True, help='YouTube video URL')
@click.option('--lang', default='en', show_default=True, help='Caption language')
@click.option('--user', 'user_id', required=True, help='User id the job belongs to')
@click.option('--plan', type=click.Choice(sorted(PLAN_POLICIES)), default='free', show_default=True)
@click.option('--detach', is_flag=True, help='Only queue the job; run it later with `run`')
def generate(url, lang, user_id, plan, detach):
    """Generate an article from a YouTube video."""
    console.print("\n[bold cyan]YouTube → Article[/bold cyan]\n")
    db = Database()

    async def _run():
        try:
            service = build_service(db)
        except LLMError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

        try:
            if detach:
                result, _, _ = service.create_job(url, lang, user_id, plan)
            else:
                result = service.start_generation_job(url, lang, user_id, plan)
        except (InvalidVideoUrl, RateLimitExceeded) as e:
            console.print(f"[red]Error: {e}[/red]")
            await service.aclose()
            sys.exit(1)

        if result.reused:
            console.print(f"[yellow]A job is already in progress for this user; following {result.job_id}[/yellow]")
        else:
            console.print(f"Job ID: [cyan]{result.job_id}[/cyan]")

        if detach:
            await service.aclose()
            if not result.reused:
                console.print(f"Queued. Run it with: [cyan]python main.py run --job-id {result.job_id}[/cyan]")
            return

        try:
            status = await follow_job(service, result.job_id)
        finally:
            await service.aclose()
        print_outcome(service, result.job_id, status)

    asyncio.run(_run())


@cli.command()
@click.option('--job-id', required=True, help='Job UUID')
def run(job_id):
    """Run a queued job in the foreground."""
    db = Database()

    async def _run():
        try:
            service = build_service(db)
        except LLMError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

        try:
            pipeline = service.prepare_run(job_id)
        except (JobNotFound, JobAlreadyClaimed) as e:
            console.print(f"[red]Error: {e}[/red]")
            await service.aclose()
            sys.exit(1)

        try:
            runner = service.runner.submit(job_id, pipeline.run)
            status = await follow_job(service, job_id)
            await runner
        finally:
            await service.aclose()
        print_outcome(service, job_id, status)

    asyncio.run(_run())


@cli.command()
@click.option('--job-id', required=True, help='Job UUID')
def status(job_id):
    """Show the progress of a job."""
    db = Database()
    job = db.get_job(job_id)
    if not job:
        console.print("[red]Error: No job found for this ID[/red]")
        sys.exit(1)

    progress = job.progress
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", job.status.value)
    table.add_row("Phase", progress.phase.value if progress else "-")
    table.add_row("Message", progress.message if progress else "")
    table.add_row("Title", job.title)
    table.add_row("Started", (progress.started_at or "") if progress else "")
    table.add_row("Updated", progress.updated_at if progress else job.updated_at)
    if progress and progress.completed_at:
        table.add_row("Completed", progress.completed_at)
    console.print(table)


@cli.command()
@click.option('--job-id', required=True, help='Job UUID')
@click.option('--output', type=click.Path(), help='Output Markdown path (defaults to the articles directory)')
def export(job_id, output):
    """Export a finished article to a Markdown file."""
    db = Database()
    job = db.get_job(job_id)
    if not job:
        console.print("[red]Error: No job found for this ID[/red]")
        sys.exit(1)
    if job.status != JobStatus.COMPLETE:
        console.print(f"[red]Error: {JobNotReady(job_id, job.status)}[/red]")
        sys.exit(1)

    filename = result_filename(job)
    output_path = Path(output) if output else config.ARTICLES_DIR / filename
    if output_path.is_dir():
        output_path = output_path / filename
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(job.markdown)

    console.print(f"[green]✓ Article exported to {output_path}[/green]")


@cli.command()
@click.option('--user', 'user_id', required=True, help='User id')
@click.option('--limit', default=20, show_default=True, help='Max jobs to list')
def jobs(user_id, limit):
    """List a user's jobs, newest first."""
    db = Database()
    records = db.list_jobs_for_user(user_id, limit)

    if not records:
        console.print("[yellow]No jobs for this user yet[/yellow]")
        return

    table = Table(title=f"Jobs for {user_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Phase")
    table.add_column("Cost (USD)", justify="right")
    table.add_column("Created", style="dim")

    for job in records:
        progress = job.progress
        cost = job.meta.get("generationCost")
        table.add_row(
            job.id[:8] + "...",
            job.title,
            job.status.value,
            progress.phase.value if progress else "-",
            f"${cost['totalUsd']:.4f}" if cost else "-",
            job.created_at[:10]
        )

    console.print(table)


@cli.command()
@click.option('--user', 'user_id', required=True, help='User id')
@click.option('--plan', type=click.Choice(sorted(PLAN_POLICIES)), default='free', show_default=True)
def usage(user_id, plan):
    """Show a user's generation quota for the current window."""
    state = GenerationRateLimiter(Database()).usage(user_id, get_plan_policy(plan))

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Plan", state.plan)
    table.add_row("Limit", state.label)
    table.add_row("Used", str(state.used))
    table.add_row("Remaining", str(state.remaining))
    table.add_row("Resets at", state.reset_at)
    console.print(table)


if __name__ == '__main__':
    cli()
