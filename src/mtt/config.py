"""Configuration management for mtt."""

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mtt.errors import PersistenceError

APP_NAME = "mtt"


def user_data_dir() -> Path:
    """Return the per-user data directory for mtt on this platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(base) / APP_NAME


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MTT_",
        # Later files override earlier ones
        env_file=(str(user_data_dir() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path | None = Field(
        default=None,
        description="Directory holding the state file (default: per-user data dir)",
    )
    state_filename: str = Field(
        default="state.json",
        description="Name of the state file inside data_dir",
    )
    lock_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for another mtt process to release the state file",
    )
    recover_corrupt_state: bool = Field(
        default=False,
        description="Move an unreadable state file aside and start fresh instead of failing",
    )

    def get_data_dir(self) -> Path:
        """Get the data directory, using the platform default if not set."""
        if self.data_dir:
            return self.data_dir.expanduser()
        return user_data_dir()

    def get_state_path(self) -> Path:
        """Get the state file path, creating its directory if needed.

        Raises:
            PersistenceError: If the data directory can't be created.
        """
        data_dir = self.get_data_dir()
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {data_dir}: {e}") from e
        return data_dir / self.state_filename
