"""Tests for the mtt command-line interface."""

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from mtt.cli import EXIT_PERSISTENCE_ERROR, EXIT_TIMER_ERROR, main

RunCli = Callable[..., tuple[int, str]]


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point mtt at a temporary data directory."""
    monkeypatch.chdir(tmp_path)
    data_dir = tmp_path / "data"
    monkeypatch.setenv("MTT_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def run_cli(data_dir: Path, capsys: pytest.CaptureFixture[str]) -> RunCli:
    """Run the CLI and return its exit code and output."""

    def _run(*argv: str) -> tuple[int, str]:
        capsys.readouterr()
        with pytest.raises(SystemExit) as exc_info:
            main(list(argv))
        captured = capsys.readouterr()
        return exc_info.value.code, captured.out + captured.err

    return _run


def _state(data_dir: Path) -> dict:
    return json.loads((data_dir / "state.json").read_text())


class TestCli:
    """End-to-end tests through main()."""

    def test_no_command_prints_help(self, run_cli: RunCli) -> None:
        code, out = run_cli()

        assert code == 0
        assert "usage: mtt" in out

    def test_version(self, run_cli: RunCli) -> None:
        code, out = run_cli("version")

        assert code == 0
        assert out.startswith("mtt ")

    def test_new_start_stop(self, run_cli: RunCli, data_dir: Path) -> None:
        assert run_cli("new", "work")[0] == 0
        assert run_cli("start")[0] == 0

        code, out = run_cli("stop", "--comment", "coding")

        assert code == 0
        assert "Stopped timer 'work'" in out
        state = _state(data_dir)
        assert state["active_timer"] == "work"
        assert state["timers"]["work"]["current_start"] is None
        assert state["timers"]["work"]["records"][0]["comment"] == "coding"

    def test_start_with_create(self, run_cli: RunCli, data_dir: Path) -> None:
        code, out = run_cli("start", "reading", "--create")

        assert code == 0
        assert "Started timer 'reading'" in out
        assert _state(data_dir)["timers"]["reading"]["current_start"] is not None

    def test_show_running(self, run_cli: RunCli) -> None:
        run_cli("start", "work", "-c")

        code, out = run_cli("show")

        assert code == 0
        assert "Timer 'work' running for" in out

    def test_domain_error_exits_nonzero_without_saving(
        self, run_cli: RunCli, data_dir: Path
    ) -> None:
        run_cli("new", "work")
        before = (data_dir / "state.json").read_text()

        code, out = run_cli("stop")

        assert code == EXIT_TIMER_ERROR
        assert "Error:" in out
        assert "No timer running" in out
        assert (data_dir / "state.json").read_text() == before

    def test_start_twice(self, run_cli: RunCli, data_dir: Path) -> None:
        run_cli("start", "work", "--create")
        first_start = _state(data_dir)["timers"]["work"]["current_start"]

        code, out = run_cli("start")

        assert code == EXIT_TIMER_ERROR
        assert "Timer already running" in out
        assert _state(data_dir)["timers"]["work"]["current_start"] == first_start

    def test_missing_timer(self, run_cli: RunCli) -> None:
        code, out = run_cli("start", "nope")

        assert code == EXIT_TIMER_ERROR
        assert "No timer with this name" in out

    def test_no_active_timer(self, run_cli: RunCli) -> None:
        code, out = run_cli("abort")

        assert code == EXIT_TIMER_ERROR
        assert "No active timer" in out

    def test_invalid_stop_time(self, run_cli: RunCli) -> None:
        run_cli("start", "work", "--create")

        code, out = run_cli("stop", "--stop-time", "garbage")

        assert code == EXIT_TIMER_ERROR
        assert "Invalid stop time" in out

    def test_abort_and_reset(self, run_cli: RunCli, data_dir: Path) -> None:
        run_cli("start", "work", "--create")

        assert run_cli("abort")[0] == 0
        assert _state(data_dir)["timers"]["work"] == {"records": [], "current_start": None}

        run_cli("start")
        run_cli("stop")
        assert len(_state(data_dir)["timers"]["work"]["records"]) == 1

        code, _ = run_cli("reset", "work")
        assert code == 0
        assert _state(data_dir)["timers"]["work"]["records"] == []

    def test_list_shows_table(self, run_cli: RunCli) -> None:
        run_cli("new", "work")
        run_cli("new", "reading")

        code, out = run_cli("list")

        assert code == 0
        assert "2 timers" in out
        assert "reading" in out
        assert "* work" in out

    def test_list_empty_creates_no_file(self, run_cli: RunCli, data_dir: Path) -> None:
        code, out = run_cli("list")

        assert code == 0
        assert "No timers yet" in out
        assert not (data_dir / "state.json").exists()

    def test_select_and_delete(self, run_cli: RunCli, data_dir: Path) -> None:
        run_cli("new", "work")
        run_cli("new", "reading")

        assert run_cli("select", "reading")[0] == 0
        assert _state(data_dir)["active_timer"] == "reading"

        assert run_cli("delete", "reading")[0] == 0
        assert "reading" not in _state(data_dir)["timers"]

        code, _ = run_cli("start")
        assert code == EXIT_TIMER_ERROR

    def test_corrupt_state_is_fatal(self, run_cli: RunCli, data_dir: Path) -> None:
        data_dir.mkdir(parents=True)
        (data_dir / "state.json").write_text("{broken")

        code, out = run_cli("new", "work")

        assert code == EXIT_PERSISTENCE_ERROR
        assert "Cannot parse state file" in out
        assert (data_dir / "state.json").read_text() == "{broken"

    def test_corrupt_state_recovery(
        self, run_cli: RunCli, data_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        data_dir.mkdir(parents=True)
        (data_dir / "state.json").write_text("{broken")
        monkeypatch.setenv("MTT_RECOVER_CORRUPT_STATE", "true")

        code, _ = run_cli("new", "work")

        assert code == 0
        assert "work" in _state(data_dir)["timers"]
        assert list(data_dir.glob("state.json.corrupt-*"))

    def test_undecodable_state_is_fatal(self, run_cli: RunCli, data_dir: Path) -> None:
        data_dir.mkdir(parents=True)
        (data_dir / "state.json").write_bytes(b"\xff\xfe{}")

        code, out = run_cli("show")

        assert code == EXIT_PERSISTENCE_ERROR
        assert "Cannot parse state file" in out

    def test_newer_state_version_is_fatal(self, run_cli: RunCli, data_dir: Path) -> None:
        data_dir.mkdir(parents=True)
        content = json.dumps({"version": 99, "timers": {}, "active_timer": None})
        (data_dir / "state.json").write_text(content)

        code, _ = run_cli("new", "work")

        assert code == EXIT_PERSISTENCE_ERROR
        assert (data_dir / "state.json").read_text() == content

    def test_invalid_setting(self, run_cli: RunCli, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MTT_LOCK_TIMEOUT", "abc")

        code, out = run_cli("list")

        assert code == EXIT_PERSISTENCE_ERROR
        assert "Invalid configuration" in out

    def test_data_dir_not_creatable(
        self, run_cli: RunCli, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("I am a file")
        monkeypatch.setenv("MTT_DATA_DIR", str(blocker / "data"))

        code, out = run_cli("new", "work")

        assert code == EXIT_PERSISTENCE_ERROR
        assert "Cannot create data directory" in out
