"""JSON file persistence for timer state.

This module handles loading and saving the ``AppState`` to a single JSON
file, with file locking so concurrent invocations cannot lose updates.
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from pydantic import ValidationError

from mtt.errors import (
    PersistenceError,
    StateCorruptError,
    StateLockedError,
    StateWriteError,
    UnsupportedStateVersion,
)
from mtt.models import AppState

logger = logging.getLogger(__name__)

# Storage format version for future migrations
STORAGE_VERSION = 1


class StateStorage:
    """JSON file-based storage for the timer registry.

    A missing file is a fresh state. A file that exists but cannot be
    parsed raises ``StateCorruptError`` unless ``recover_corrupt`` is set,
    in which case it is moved aside first.

    Example:
        storage = StateStorage("/path/to/state.json")
        with storage.session() as state:
            state.create_timer("work")
    """

    def __init__(
        self,
        path: str | Path,
        lock_timeout: float = 5.0,
        recover_corrupt: bool = False,
    ) -> None:
        """Initialize the state storage.

        Args:
            path: Path to the JSON state file.
            lock_timeout: Seconds to wait for the file lock.
            recover_corrupt: Start fresh when the file is unreadable.
        """
        self._path = Path(path)
        self._lock_path = self._path.with_suffix(".lock")
        self._lock = FileLock(str(self._lock_path))
        self._lock_timeout = lock_timeout
        self._recover_corrupt = recover_corrupt

    @property
    def path(self) -> Path:
        """Get the storage file path."""
        return self._path

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            self._lock.acquire(timeout=self._lock_timeout)
        except Timeout as e:
            raise StateLockedError(
                f"State file is locked by another process: {self._lock_path}"
            ) from e
        try:
            yield
        finally:
            self._lock.release()

    def _read_state(self) -> AppState:
        """Read and parse the state file.

        Returns:
            Parsed state, or a fresh one if the file doesn't exist.

        Raises:
            StateCorruptError: If the file can't be decoded or parsed.
            UnsupportedStateVersion: If the file was written by a newer mtt.
            PersistenceError: If the file can't be read.
        """
        if not self._path.exists():
            logger.debug(f"No state file at {self._path}, starting fresh")
            return AppState()

        try:
            content = self._path.read_text(encoding="utf-8")
            data = json.loads(content)
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")

            version = data.pop("version", STORAGE_VERSION)
            if isinstance(version, bool) or not isinstance(version, int):
                raise ValueError(f"invalid version {version!r}")
            if version > STORAGE_VERSION:
                raise UnsupportedStateVersion(
                    f"State file {self._path} has version {version}, "
                    f"this mtt only reads up to version {STORAGE_VERSION}"
                )
            if version < STORAGE_VERSION:
                data = self._migrate_data(data, version)

            return AppState.model_validate(data)
        except (ValueError, ValidationError) as e:
            # UnicodeDecodeError and JSONDecodeError are ValueErrors
            if not self._recover_corrupt:
                raise StateCorruptError(f"Cannot parse state file {self._path}: {e}") from e
            self._move_aside()
            return AppState()
        except OSError as e:
            raise PersistenceError(f"Cannot read state file {self._path}: {e}") from e

    def _move_aside(self) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            self._path.rename(backup)
        except OSError as e:
            raise PersistenceError(f"Cannot move corrupt state file aside: {e}") from e
        logger.warning(f"State file was unreadable, moved to {backup} and starting fresh")

    def _write_state(self, state: AppState) -> None:
        """Write the whole state to the file.

        The document goes to a temporary sibling first and then replaces
        the target, so readers never see a half-written file.

        Raises:
            StateWriteError: If the file can't be written.
        """
        json_data = {"version": STORAGE_VERSION, **state.model_dump(mode="json")}
        content = json.dumps(json_data, indent=2)

        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(content)
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateWriteError(f"Cannot write state file {self._path}: {e}") from e

    def _migrate_data(self, data: dict[str, Any], from_version: int) -> dict[str, Any]:
        """Migrate data from an older version.

        Args:
            data: Raw data from file, without the version key.
            from_version: Version of the stored data.

        Returns:
            Migrated data at current version.
        """
        # Currently no migrations needed
        logger.info(f"Migrating state from version {from_version} to {STORAGE_VERSION}")
        return data

    def load(self) -> AppState:
        """Load the state from storage.

        Returns:
            The stored state, or a fresh one if there is no file.
        """
        with self._locked():
            state = self._read_state()
            logger.debug(f"Loaded {len(state.timers)} timers from {self._path}")
            return state

    def save(self, state: AppState) -> None:
        """Overwrite storage with ``state``.

        Args:
            state: State to save.
        """
        with self._locked():
            self._write_state(state)
            logger.debug(f"Saved {len(state.timers)} timers to {self._path}")

    @contextmanager
    def session(self) -> Iterator[AppState]:
        """Load, mutate and commit the state under one lock.

        The state is saved only when the ``with`` block completes without
        raising, so a failed operation leaves the file untouched.

        Yields:
            The loaded state.
        """
        with self._locked():
            state = self._read_state()
            yield state
            self._write_state(state)
            logger.debug(f"Committed {len(state.timers)} timers to {self._path}")
