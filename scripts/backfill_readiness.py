#!/usr/bin/env python3
"""
Readiness backfill manager.

Starts, resumes, cancels and inspects readiness backfill jobs against the
PostgreSQL cellar, one batch at a time, with progress printed after each
step. Safe to interrupt: the next --resume continues from the saved cursor.
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cellarwise.constants import BackfillMode, JobStatus
from cellarwise.database import PostgresCellarStore, init_database
from cellarwise.error_handling import CellarError
from cellarwise.profile_source import OpenAIProfileSource
from cellarwise.report import collect_rows, job_progress, profile_frame, readiness_frame, summarize_readiness
from cellarwise.service import CellarEngine
from cellarwise.utils import ProfileCache

console = Console()


def build_engine(use_ai: bool) -> CellarEngine:
    """Engine over the configured database, optionally with AI profiles."""
    store = PostgresCellarStore()
    profile_source = None
    if use_ai:
        profile_source = OpenAIProfileSource.from_store(store, cache=ProfileCache())
        console.print("[dim]AI profiles enabled (cached)[/dim]")
    return CellarEngine(store, profile_source=profile_source)


def print_job(job) -> None:
    """Show job counters as a table."""
    progress = job_progress(job)
    status_style = {
        JobStatus.RUNNING.value: "yellow",
        JobStatus.COMPLETED.value: "green",
        JobStatus.FAILED.value: "red",
        JobStatus.CANCELLED.value: "dim",
    }.get(progress["status"], "white")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Job", style="cyan", width=34)
    table.add_column("Mode", width=16)
    table.add_column("Status", justify="center", width=10)
    table.add_column("Processed", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Progress", justify="right")

    percent = progress["percent_complete"]
    table.add_row(
        progress["job_id"],
        progress["mode"],
        f"[{status_style}]{progress['status']}[/{status_style}]",
        str(progress["processed"]),
        str(progress["updated"]),
        str(progress["skipped"]),
        str(progress["failed"]),
        f"{percent:.1f}%" if percent is not None else "N/A",
    )
    console.print(table)

    if progress["error"]:
        console.print(f"[red]✗ {progress['error']}[/red]")
    for failure in job.failures[-5:]:
        console.print(f"  [dim]row {failure.row_id}: {failure.error}[/dim]")


def drive(engine: CellarEngine, job, max_batches) -> None:
    """Step a running job, printing progress after every batch."""
    batches = 0
    while job.status == JobStatus.RUNNING and (max_batches is None or batches < max_batches):
        job = engine.backfill.step(job.id)
        batches += 1
        console.print(f"[dim]Batch {batches}: cursor={job.cursor} processed={job.processed}[/dim]")
    print_job(job)


def show_summary(engine: CellarEngine) -> None:
    """Readiness distribution across the whole cellar."""
    rows = collect_rows(engine.wine_store)
    df = readiness_frame(rows)
    summary = summarize_readiness(df, engine.algorithm_version)

    console.print(f"[bold]🍷 {summary['total']} rows, {summary['with_readiness']} with readiness[/bold]")
    console.print(f"[dim]{summary['stale_or_missing']} stale or missing for version {engine.algorithm_version}[/dim]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Status", style="cyan")
    table.add_column("Wines", justify="right")
    for status, count in summary["by_status"].items():
        if count:
            table.add_row(status, str(count))
    console.print(table)

    profiles = profile_frame(rows)
    if len(profiles):
        console.print(
            f"\n[dim]{len(profiles)} stored profiles, mean power {profiles['power'].mean():.1f}, "
            f"{int((profiles['source'] == 'ai').sum())} from AI[/dim]"
        )


def main():
    parser = argparse.ArgumentParser(
        description="Cellarwise Readiness Backfill",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --init                          Create tables if missing
  %(prog)s --start stale_or_missing        Start a job and run it to the end
  %(prog)s --start force_all --batches 5   Start a job, run 5 batches
  %(prog)s --resume JOB_ID                 Continue a job from its cursor
  %(prog)s --cancel JOB_ID                 Stop a job at the next batch
  %(prog)s --status JOB_ID                 Show job counters
  %(prog)s --summary                       Readiness distribution
        """
    )

    parser.add_argument(
        '--init',
        action='store_true',
        help='Create database tables and indexes'
    )

    parser.add_argument(
        '--start', '-s',
        choices=[mode.value for mode in BackfillMode],
        metavar='MODE',
        help='Start a job (missing_only, stale_or_missing, force_all)'
    )

    parser.add_argument(
        '--resume', '-r',
        metavar='JOB_ID',
        help='Resume a running, idle or failed job'
    )

    parser.add_argument(
        '--requeue',
        metavar='JOB_ID',
        help='Move a cancelled or failed job back to idle'
    )

    parser.add_argument(
        '--cancel', '-c',
        metavar='JOB_ID',
        help='Request cancellation of a running job'
    )

    parser.add_argument(
        '--status',
        metavar='JOB_ID',
        help='Show job status'
    )

    parser.add_argument(
        '--summary',
        action='store_true',
        help='Show readiness distribution'
    )

    parser.add_argument(
        '--batches', '-b',
        type=int,
        default=None,
        help='Maximum batches to run (default: until done)'
    )

    parser.add_argument(
        '--ai',
        action='store_true',
        help='Request missing profiles from OpenAI'
    )

    args = parser.parse_args()

    console.print("\n[bold magenta]🍷 Cellarwise Readiness Backfill[/bold magenta]\n")

    try:
        if args.init:
            init_database()
            console.print("[green]✓ Schema ready[/green]")
            return

        engine = build_engine(args.ai)

        if args.start:
            job = engine.start_backfill(args.start)
            console.print(f"[green]✓ Started job {job.id}[/green] (~{job.estimated_total} rows)\n")
            drive(engine, job, args.batches)

        elif args.resume:
            job = engine.resume_backfill(args.resume, max_batches=0)
            drive(engine, job, args.batches)

        elif args.requeue:
            print_job(engine.requeue_backfill(args.requeue))

        elif args.cancel:
            engine.cancel_backfill(args.cancel)
            console.print(f"[yellow]Cancel requested for {args.cancel}[/yellow]")

        elif args.status:
            print_job(engine.get_job_status(args.status))

        elif args.summary:
            show_summary(engine)

        else:
            parser.print_help()

    except CellarError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
