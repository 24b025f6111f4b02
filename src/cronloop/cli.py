"""Command-line interface for cronloop.

Runs the shell commands listed in a YAML jobs file on their cron
schedules. SIGTERM (and Ctrl+C) stop the scheduler gracefully: no new
commands start, and the process exits once running commands finish.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cronloop import __version__
from cronloop.config import settings
from cronloop.errors import RegistrationError
from cronloop.jobs_file import load_jobs_file
from cronloop.schedule import CronExpression, compute_next_run, preview_runs, resolve_timezone
from cronloop.scheduler import Scheduler

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def _jobs_path(args: argparse.Namespace) -> Path:
    path = args.jobs_file or settings.jobs_file
    if path is None:
        _fail("No jobs file given (pass a path or set CRONLOOP_JOBS_FILE)")
    return Path(path)


def _build_scheduler(path: Path, debug: bool) -> Scheduler:
    try:
        entries = load_jobs_file(path)
    except FileNotFoundError:
        _fail(f"Jobs file not found: {path}")
    except RegistrationError as e:
        _fail(str(e))

    if not entries:
        console.print("[yellow]No jobs defined.[/yellow]")
        sys.exit(0)

    # Foreground runs also stop on Ctrl+C
    signals = list(dict.fromkeys([*settings.shutdown_signals, "SIGINT"]))
    scheduler = Scheduler(debug=debug, signals=signals)
    try:
        scheduler.add([entry.to_spec() for entry in entries])
    except RegistrationError as e:
        _fail(str(e))
    return scheduler


def cmd_run(args: argparse.Namespace) -> None:
    """Run the jobs in a jobs file until stopped."""
    scheduler = _build_scheduler(_jobs_path(args), debug=args.debug or settings.debug)

    console.print(f"[bold]Starting cron scheduler[/bold] ({len(scheduler.list_jobs())} jobs)")
    console.print("[dim]Press Ctrl+C or send SIGTERM to stop.[/dim]\n")

    scheduler.run_forever()
    console.print("[dim]Scheduler stopped.[/dim]")


def cmd_list(args: argparse.Namespace) -> None:
    """List the jobs in a jobs file with their next run times."""
    path = _jobs_path(args)
    try:
        entries = load_jobs_file(path)
    except FileNotFoundError:
        _fail(f"Jobs file not found: {path}")
    except RegistrationError as e:
        _fail(str(e))

    if not entries:
        console.print("[yellow]No jobs defined.[/yellow]")
        return

    table = Table(title=f"Jobs in {path}")
    table.add_column("Name", style="cyan")
    table.add_column("Schedule", style="yellow")
    table.add_column("Command", style="white")
    table.add_column("Single", style="green")
    table.add_column("Next Run", style="blue")

    now = datetime.now().timestamp()
    for entry in entries:
        try:
            expression = CronExpression(entry.cron)
            tz = resolve_timezone(entry.timezone)
        except RegistrationError as e:
            next_run = f"[red]{e}[/red]"
        else:
            next_run = compute_next_run(expression, now, tz).isoformat()

        table.add_row(
            entry.name or "-",
            entry.cron,
            entry.command,
            "Yes" if entry.single else "No",
            next_run,
        )

    console.print(table)


def cmd_next(args: argparse.Namespace) -> None:
    """Preview the next fire times of a cron expression."""
    try:
        expression = CronExpression(args.expression)
        tz = resolve_timezone(args.timezone)
    except RegistrationError as e:
        _fail(str(e))

    for run in preview_runs(expression, args.count, tz):
        console.print(run.isoformat())


def cmd_version(args: argparse.Namespace) -> None:
    """Show version information."""
    console.print(f"cronloop {__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cronloop",
        description="Run shell commands on cron schedules with graceful shutdown.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the jobs in a jobs file")
    run_parser.add_argument("jobs_file", nargs="?", help="YAML jobs file")
    run_parser.add_argument("--debug", action="store_true", help="Log job lifecycle events")
    run_parser.set_defaults(func=cmd_run)

    list_parser = subparsers.add_parser("list", help="List jobs and their next run times")
    list_parser.add_argument("jobs_file", nargs="?", help="YAML jobs file")
    list_parser.set_defaults(func=cmd_list)

    next_parser = subparsers.add_parser("next", help="Preview fire times of an expression")
    next_parser.add_argument("expression", help="Cron expression, quoted")
    next_parser.add_argument("-n", "--count", type=int, default=5, help="Number of fire times")
    next_parser.add_argument("--timezone", help="IANA timezone (default: UTC)")
    next_parser.set_defaults(func=cmd_next)

    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")


if __name__ == "__main__":
    main()
