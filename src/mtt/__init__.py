"""mtt - A personal time tracker with named timers."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("mtt")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from mtt.errors import (
    DuplicateTimerName,
    MttError,
    NoActiveTimer,
    NoSuchTimer,
    NoTimerRunning,
    PersistenceError,
    TimerAlreadyRunning,
    TimerError,
)
from mtt.models import AppState, Timer, TimerRecord
from mtt.storage import StateStorage

__all__ = [
    # Models
    "AppState",
    "Timer",
    "TimerRecord",
    # Storage
    "StateStorage",
    # Errors
    "MttError",
    "TimerError",
    "TimerAlreadyRunning",
    "NoTimerRunning",
    "NoSuchTimer",
    "NoActiveTimer",
    "DuplicateTimerName",
    "PersistenceError",
]
