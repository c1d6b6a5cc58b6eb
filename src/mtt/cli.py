"""Command-line interface for mtt.

mtt keeps any number of named timers. Commands that omit a timer name act
on the active timer, which is the one started, created or selected last.

EXIT CODES:
-----------
0  success
1  the command is not valid for the current timer state
2  the state file or the settings could not be read or written
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import NoReturn

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from mtt import __version__
from mtt.commands import (
    READ_ONLY_COMMANDS,
    AbortCommand,
    Command,
    CommandResult,
    DeleteCommand,
    ListCommand,
    NewCommand,
    ResetCommand,
    SelectCommand,
    ShowCommand,
    StartCommand,
    StopCommand,
    dispatch,
)
from mtt.config import Settings
from mtt.errors import PersistenceError, TimerError
from mtt.storage import StateStorage
from mtt.timefmt import format_duration, parse_stop_time

console = Console()

logger = logging.getLogger(__name__)

EXIT_TIMER_ERROR = 1
EXIT_PERSISTENCE_ERROR = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="mtt",
        description="mtt - track time with named timers",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed output")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    new_parser = subparsers.add_parser("new", help="Create a timer")
    new_parser.add_argument("name", help="Name of the new timer")

    start_parser = subparsers.add_parser(
        "start",
        help="Start a timer",
        description="Start the named timer, or the active timer if no name is given. "
                    "The started timer becomes the active timer.",
    )
    start_parser.add_argument("name", nargs="?", default=None, help="Timer to start")
    start_parser.add_argument(
        "-c", "--create", action="store_true",
        help="Create the timer if it doesn't exist yet"
    )

    stop_parser = subparsers.add_parser(
        "stop",
        help="Stop a timer and record the interval",
        epilog="""Examples:
  mtt stop                                  Stop the active timer now
  mtt stop work -m "code review"            Stop 'work' with a comment
  mtt stop --stop-time 17:30                Forgot to stop, it ended at 17:30 today
  mtt stop --stop-time 2024-03-01T17:30     Full timestamp (local time)""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    stop_parser.add_argument("name", nargs="?", default=None, help="Timer to stop")
    stop_parser.add_argument(
        "--stop-time",
        help="Stop time to use instead of now (if you forgot to stop your timer)"
    )
    stop_parser.add_argument(
        "-m", "--comment", default="",
        help="A comment to add to this timer record"
    )

    abort_parser = subparsers.add_parser(
        "abort", help="Abort the running interval without recording it"
    )
    abort_parser.add_argument("name", nargs="?", default=None, help="Timer to abort")

    show_parser = subparsers.add_parser(
        "show", help="Show the running and total time"
    )
    show_parser.add_argument("name", nargs="?", default=None, help="Timer to show")

    reset_parser = subparsers.add_parser(
        "reset", help="Reset the total time of a timer"
    )
    reset_parser.add_argument("name", nargs="?", default=None, help="Timer to reset")

    subparsers.add_parser("list", help="List all timers")

    select_parser = subparsers.add_parser("select", help="Make a timer the active one")
    select_parser.add_argument("name", help="Timer to activate")

    delete_parser = subparsers.add_parser("delete", help="Delete a timer and its records")
    delete_parser.add_argument("name", help="Timer to delete")

    subparsers.add_parser("version", help="Show version information")

    return parser


def build_command(args: argparse.Namespace, now: datetime) -> Command:
    """Turn parsed arguments into a command value.

    Raises:
        InvalidStopTime: If ``--stop-time`` can't be parsed.
    """
    if args.command == "new":
        return NewCommand(name=args.name)
    if args.command == "start":
        return StartCommand(name=args.name, create=args.create)
    if args.command == "stop":
        stop_time = parse_stop_time(args.stop_time, now) if args.stop_time else None
        return StopCommand(name=args.name, stop_time=stop_time, comment=args.comment)
    if args.command == "abort":
        return AbortCommand(name=args.name)
    if args.command == "show":
        return ShowCommand(name=args.name)
    if args.command == "reset":
        return ResetCommand(name=args.name)
    if args.command == "list":
        return ListCommand()
    if args.command == "select":
        return SelectCommand(name=args.name)
    if args.command == "delete":
        return DeleteCommand(name=args.name)
    raise ValueError(f"Unknown command: {args.command}")


def run_command(command: Command, settings: Settings, now: datetime) -> CommandResult:
    """Load state, run one command and save the state if it changed.

    Nothing is written when the command raises.
    """
    storage = StateStorage(
        settings.get_state_path(),
        lock_timeout=settings.lock_timeout,
        recover_corrupt=settings.recover_corrupt_state,
    )

    if isinstance(command, READ_ONLY_COMMANDS):
        return dispatch(command, storage.load(), now)

    with storage.session() as state:
        return dispatch(command, state, now)


def print_result(result: CommandResult) -> None:
    """Print a command result, with a table when it covers several timers."""
    console.print(f"[green]{escape(result.message)}[/green]")

    if len(result.timers) < 2:
        return

    table = Table()
    table.add_column("Timer", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Current", style="yellow")
    table.add_column("Total", style="green")
    table.add_column("Records", style="magenta")

    for summary in result.timers:
        name = escape(summary.name)
        table.add_row(
            f"* {name}" if summary.active else name,
            "running" if summary.running else "idle",
            format_duration(summary.current) if summary.current is not None else "-",
            format_duration(summary.total),
            str(summary.records),
        )

    console.print(table)


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the mtt CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "version":
        console.print(f"mtt {__version__}")
        sys.exit(0)

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        sys.exit(EXIT_PERSISTENCE_ERROR)

    now = datetime.now(timezone.utc)
    try:
        command = build_command(args, now)
        result = run_command(command, settings, now)
    except TimerError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(EXIT_TIMER_ERROR)
    except PersistenceError as e:
        logger.debug("Persistence failure", exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(EXIT_PERSISTENCE_ERROR)

    print_result(result)
    sys.exit(0)


if __name__ == "__main__":
    main()
