"""Exception hierarchy for mtt.

Domain errors (``TimerError`` subclasses) are recoverable: the CLI reports
them and exits without writing state. Persistence errors are fatal.
"""


class MttError(Exception):
    """Base class for all mtt errors."""


class TimerError(MttError):
    """A requested timer operation is not valid in the current state."""

    message = "Timer error"

    def __init__(self, name: str | None = None, message: str | None = None) -> None:
        self.name = name
        if message is not None:
            self.message = message
        super().__init__(self.message if name is None else f"{self.message}: {name}")


class TimerAlreadyRunning(TimerError):
    message = "Timer already running"


class NoTimerRunning(TimerError):
    message = "No timer running"


class NoSuchTimer(TimerError):
    message = "No timer with this name"


class NoActiveTimer(TimerError):
    message = "No active timer, pass a timer name"


class DuplicateTimerName(TimerError):
    message = "A timer with this name already exists"


class InvalidStopTime(TimerError):
    message = "Invalid stop time"


class PersistenceError(MttError):
    """The state file could not be read or written."""


class StateCorruptError(PersistenceError):
    """The state file exists but cannot be parsed."""


class StateWriteError(PersistenceError):
    """The state file could not be written."""


class StateLockedError(PersistenceError):
    """Another mtt process holds the state file lock."""


class UnsupportedStateVersion(PersistenceError):
    """The state file was written by a newer version of mtt."""
