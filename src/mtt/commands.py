"""Commands that can be run against the timer state.

Each invocation of mtt builds exactly one command value and hands it to
``dispatch``, which runs the matching state operation and describes the
outcome in a ``CommandResult``.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from mtt.errors import InvalidStopTime, NoActiveTimer, NoSuchTimer, NoTimerRunning, TimerError
from mtt.models import AppState, Timer
from mtt.timefmt import format_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewCommand:
    """Create a timer."""

    name: str


@dataclass(frozen=True)
class StartCommand:
    """Start the named or active timer, optionally creating it."""

    name: str | None = None
    create: bool = False


@dataclass(frozen=True)
class StopCommand:
    """Stop the named or active timer.

    Attributes:
        name: Timer to stop, the active timer if None.
        stop_time: End of the interval, now if None.
        comment: Annotation stored with the record.
    """

    name: str | None = None
    stop_time: datetime | None = None
    comment: str = ""


@dataclass(frozen=True)
class AbortCommand:
    """Discard the running interval of the named or active timer."""

    name: str | None = None


@dataclass(frozen=True)
class ShowCommand:
    """Show running and total time of the named or active timer, or all timers."""

    name: str | None = None


@dataclass(frozen=True)
class ResetCommand:
    """Clear the record log of the named or active timer."""

    name: str | None = None


@dataclass(frozen=True)
class ListCommand:
    """List all timers."""


@dataclass(frozen=True)
class SelectCommand:
    """Make a timer the active one."""

    name: str


@dataclass(frozen=True)
class DeleteCommand:
    """Remove a timer and its records."""

    name: str


Command = (
    NewCommand
    | StartCommand
    | StopCommand
    | AbortCommand
    | ShowCommand
    | ResetCommand
    | ListCommand
    | SelectCommand
    | DeleteCommand
)

# Commands that never modify the state and need no save
READ_ONLY_COMMANDS = (ShowCommand, ListCommand)


@dataclass
class TimerSummary:
    """Snapshot of one timer for display.

    Attributes:
        name: Timer name.
        running: Whether an interval is in progress.
        current: Elapsed time of the running interval, None when idle.
        total: Sum of all recorded intervals.
        records: Number of recorded intervals.
        active: Whether this is the active timer.
    """

    name: str
    running: bool
    current: timedelta | None
    total: timedelta
    records: int
    active: bool = False


@dataclass
class CommandResult:
    """Outcome of a dispatched command.

    Attributes:
        message: Confirmation line for the user.
        timers: Timer snapshots to display, if any.
    """

    message: str
    timers: list[TimerSummary] = field(default_factory=list)


def summarize(state: AppState, name: str, timer: Timer, now: datetime) -> TimerSummary:
    """Build a display snapshot of ``timer``."""
    return TimerSummary(
        name=name,
        running=timer.is_running(),
        current=timer.current_duration(now) if timer.is_running() else None,
        total=timer.total_duration(),
        records=len(timer.records),
        active=state.active_timer == name,
    )


def resolve_timer(state: AppState, name: str | None) -> tuple[str, Timer]:
    """Find the timer a command refers to.

    Args:
        state: Loaded state.
        name: Explicit timer name, or None for the active timer.

    Returns:
        The timer name and instance.

    Raises:
        NoSuchTimer: If ``name`` is not registered.
        NoActiveTimer: If no name is given and there is no usable active timer.
    """
    if name is not None:
        timer = state.get_timer(name)
        if timer is None:
            raise NoSuchTimer(name)
        return name, timer

    timer = state.get_active_timer()
    if timer is None or state.active_timer is None:
        raise NoActiveTimer()
    return state.active_timer, timer


@contextmanager
def _about(name: str) -> Iterator[None]:
    """Attach the timer name to errors raised by Timer methods."""
    try:
        yield
    except TimerError as e:
        if e.name is None:
            raise type(e)(name, e.message) from None
        raise


def _new(command: NewCommand, state: AppState, now: datetime) -> CommandResult:
    state.create_timer(command.name)
    message = f"Created timer '{command.name}'"
    if not state.has_active_timer():
        state.set_timer_active(command.name)
        message += " (now active)"
    return CommandResult(message=message)


def _start(command: StartCommand, state: AppState, now: datetime) -> CommandResult:
    if command.create and command.name is not None and state.get_timer(command.name) is None:
        state.create_timer(command.name)
        logger.debug(f"Created timer {command.name!r} on start")

    name, timer = resolve_timer(state, command.name)
    with _about(name):
        timer.start_timer(now)
    state.set_timer_active(name)
    return CommandResult(message=f"Started timer '{name}'")


def _stop(command: StopCommand, state: AppState, now: datetime) -> CommandResult:
    name, timer = resolve_timer(state, command.name)
    if not timer.is_running():
        raise NoTimerRunning(name)

    stop_time = command.stop_time or now
    if stop_time > now:
        raise InvalidStopTime(name, "Stop time is in the future")
    if stop_time < timer.current_start:
        raise InvalidStopTime(name, "Stop time is before the timer was started")

    with _about(name):
        record = timer.stop_timer(stop_time, command.comment)
    return CommandResult(
        message=(
            f"Stopped timer '{name}' after {format_duration(record.duration)}, "
            f"total {format_duration(timer.total_duration())}"
        ),
        timers=[summarize(state, name, timer, now)],
    )


def _abort(command: AbortCommand, state: AppState, now: datetime) -> CommandResult:
    name, _ = resolve_timer(state, command.name)
    with _about(name):
        started = state.abort_timer(name)
    discarded = max(now - started, timedelta(0))
    return CommandResult(
        message=f"Aborted timer '{name}', discarded {format_duration(discarded)}"
    )


def _show(command: ShowCommand, state: AppState, now: datetime) -> CommandResult:
    if command.name is not None or state.has_active_timer():
        name, timer = resolve_timer(state, command.name)
        summary = summarize(state, name, timer, now)
        if summary.current is not None:
            message = (
                f"Timer '{name}' running for {format_duration(summary.current)}, "
                f"total {format_duration(summary.total)}"
            )
        else:
            message = f"Timer '{name}' not running, total {format_duration(summary.total)}"
        return CommandResult(message=message, timers=[summary])

    if not state.timers:
        return CommandResult(message="No timers yet, create one with 'mtt new NAME'")

    return CommandResult(
        message="No active timer",
        timers=[summarize(state, name, timer, now) for name, timer in state.timers.items()],
    )


def _reset(command: ResetCommand, state: AppState, now: datetime) -> CommandResult:
    name, timer = resolve_timer(state, command.name)
    removed = timer.reset()
    return CommandResult(message=f"Reset timer '{name}', removed {removed} records")


def _list(command: ListCommand, state: AppState, now: datetime) -> CommandResult:
    summaries = [summarize(state, name, timer, now) for name, timer in state.timers.items()]
    if not summaries:
        return CommandResult(message="No timers yet, create one with 'mtt new NAME'")
    return CommandResult(message=f"{len(summaries)} timers", timers=summaries)


def _select(command: SelectCommand, state: AppState, now: datetime) -> CommandResult:
    state.set_timer_active(command.name)
    return CommandResult(message=f"Timer '{command.name}' is now active")


def _delete(command: DeleteCommand, state: AppState, now: datetime) -> CommandResult:
    timer = state.remove_timer(command.name)
    message = f"Deleted timer '{command.name}' with {len(timer.records)} records"
    if state.active_timer == command.name:
        message += ", no timer is active now"
    return CommandResult(message=message)


_HANDLERS: dict[type, Callable[[Any, AppState, datetime], CommandResult]] = {
    NewCommand: _new,
    StartCommand: _start,
    StopCommand: _stop,
    AbortCommand: _abort,
    ShowCommand: _show,
    ResetCommand: _reset,
    ListCommand: _list,
    SelectCommand: _select,
    DeleteCommand: _delete,
}


def dispatch(command: Command, state: AppState, now: datetime | None = None) -> CommandResult:
    """Run ``command`` against ``state``.

    Args:
        command: The command to run.
        state: Loaded state, mutated in place.
        now: Current time (defaults to utcnow).

    Returns:
        Description of the outcome.

    Raises:
        TimerError: If the command is not valid for the current state.
    """
    now = now or datetime.now(timezone.utc)
    handler = _HANDLERS[type(command)]
    logger.debug(f"Dispatching {command!r}")
    return handler(command, state, now)
