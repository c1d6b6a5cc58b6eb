"""Timer and state models for mtt.

This module defines the Pydantic models persisted in the state file along
with the state transitions the commands rely on. All timestamps are
timezone aware.
"""

from datetime import datetime, timedelta

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from mtt.errors import DuplicateTimerName, NoSuchTimer, NoTimerRunning, TimerAlreadyRunning


class TimerRecord(BaseModel):
    """A completed interval of a timer.

    Attributes:
        start: When the interval started.
        end: When the interval ended.
        comment: Free-text annotation, may be empty.
    """

    model_config = ConfigDict(frozen=True)

    start: AwareDatetime = Field(..., description="Interval start")
    end: AwareDatetime = Field(..., description="Interval end")
    comment: str = Field(default="", description="Annotation for this interval")

    @property
    def duration(self) -> timedelta:
        """Length of the interval, zero if ``end`` precedes ``start``."""
        return max(self.end - self.start, timedelta(0))


class Timer(BaseModel):
    """A named stopwatch.

    Holds the log of completed records and, while running, the start of
    the in-progress interval.

    Attributes:
        records: Completed intervals in completion order.
        current_start: Start of the running interval, None when idle.
    """

    model_config = ConfigDict(validate_assignment=True)

    records: list[TimerRecord] = Field(
        default_factory=list,
        description="Completed intervals"
    )
    current_start: AwareDatetime | None = Field(
        default=None,
        description="Start of the in-progress interval"
    )

    def start_timer(self, now: datetime) -> None:
        """Start a new interval at ``now``.

        Raises:
            TimerAlreadyRunning: If an interval is already in progress.
        """
        if self.current_start is not None:
            raise TimerAlreadyRunning()
        self.current_start = now

    def stop_timer(self, now: datetime, comment: str = "") -> TimerRecord:
        """Close the running interval at ``now`` and log it.

        Args:
            now: End of the interval.
            comment: Annotation stored with the record.

        Returns:
            The appended record.

        Raises:
            NoTimerRunning: If the timer is idle.
        """
        if self.current_start is None:
            raise NoTimerRunning()

        record = TimerRecord(start=self.current_start, end=now, comment=comment)
        self.records.append(record)
        self.current_start = None
        return record

    def abort_timer(self) -> datetime:
        """Discard the running interval without recording it.

        Returns:
            The start of the discarded interval.

        Raises:
            NoTimerRunning: If the timer is idle.
        """
        if self.current_start is None:
            raise NoTimerRunning()

        started = self.current_start
        self.current_start = None
        return started

    def current_duration(self, now: datetime) -> timedelta:
        """Elapsed time of the running interval.

        Raises:
            NoTimerRunning: If the timer is idle.
        """
        if self.current_start is None:
            raise NoTimerRunning()
        return max(now - self.current_start, timedelta(0))

    def reset(self) -> int:
        """Clear the record log. A running interval is kept.

        Returns:
            Number of records removed.
        """
        count = len(self.records)
        self.records.clear()
        return count

    def total_duration(self) -> timedelta:
        """Sum of all record durations."""
        return sum((record.duration for record in self.records), timedelta(0))

    def is_running(self) -> bool:
        return self.current_start is not None


class AppState(BaseModel):
    """Registry of all timers plus the active-timer selection.

    ``active_timer`` is only a lookup key. It may name a timer that no
    longer exists, in which case there is no active timer.

    Attributes:
        timers: Timers keyed by name.
        active_timer: Name of the timer targeted when none is given.
    """

    model_config = ConfigDict(validate_assignment=True)

    timers: dict[str, Timer] = Field(
        default_factory=dict,
        description="Timers keyed by name"
    )
    active_timer: str | None = Field(
        default=None,
        description="Name of the active timer"
    )

    def create_timer(self, name: str) -> Timer:
        """Register a new idle timer.

        Raises:
            DuplicateTimerName: If ``name`` is already taken.
        """
        if name in self.timers:
            raise DuplicateTimerName(name)

        timer = Timer()
        self.timers[name] = timer
        return timer

    def get_timer(self, name: str) -> Timer | None:
        return self.timers.get(name)

    def remove_timer(self, name: str) -> Timer:
        """Delete a timer from the registry.

        The active-timer name is left untouched and may dangle afterwards.

        Raises:
            NoSuchTimer: If ``name`` is not registered.
        """
        if name not in self.timers:
            raise NoSuchTimer(name)
        return self.timers.pop(name)

    def set_timer_active(self, name: str) -> None:
        """Make ``name`` the active timer.

        Raises:
            NoSuchTimer: If ``name`` is not registered.
        """
        if name not in self.timers:
            raise NoSuchTimer(name)
        self.active_timer = name

    def get_active_timer(self) -> Timer | None:
        """Return the active timer, or None if unset or dangling."""
        if self.active_timer is None:
            return None
        return self.timers.get(self.active_timer)

    def has_active_timer(self) -> bool:
        return self.get_active_timer() is not None

    def abort_timer(self, name: str) -> datetime:
        """Discard the running interval of timer ``name``.

        Raises:
            NoSuchTimer: If ``name`` is not registered.
            NoTimerRunning: If the timer is idle.
        """
        timer = self.get_timer(name)
        if timer is None:
            raise NoSuchTimer(name)
        try:
            return timer.abort_timer()
        except NoTimerRunning:
            raise NoTimerRunning(name) from None

    def running_timers(self) -> list[tuple[str, Timer]]:
        """Timers with an interval in progress, in registry order."""
        return [(name, timer) for name, timer in self.timers.items() if timer.is_running()]
