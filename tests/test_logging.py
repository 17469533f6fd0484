"""Tests for the diagnostics log.

The logger records structured entries for things the shell did that
the user did not see: processes started, commands that could not be
found, history that could not be saved.
"""

import io
from pathlib import Path

import pytest

from ai_shell.logging import LogEntry, Logger, LogLevel
from ai_shell.pipeline import run_line
from ai_shell.state import ShellState


class TestLogLevel:
    """Verify log level ordering."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO
        assert LogLevel.INFO < LogLevel.WARNING
        assert LogLevel.WARNING < LogLevel.ERROR


    def test_parse_ignores_case(self) -> None:
        """Levels are looked up by name."""
        assert LogLevel.parse("Warning") is LogLevel.WARNING

    def test_parse_unknown(self) -> None:
        """An unknown name is rejected."""
        with pytest.raises(ValueError, match="unknown log level"):
            LogLevel.parse("loud")


class TestLogEntry:
    """Verify log entry structure."""

    def test_entry_has_fields(self) -> None:
        """A log entry should store level, message, source, and pid."""
        entry = LogEntry(level=LogLevel.INFO, message="started", source="pipeline", pid=42)
        assert entry.level is LogLevel.INFO
        assert entry.message == "started"
        assert entry.source == "pipeline"
        assert entry.pid == 42

    def test_pid_is_optional(self) -> None:
        """Entries about no particular process have no pid."""
        assert LogEntry(level=LogLevel.INFO, message="m", source="s").pid is None

    def test_entry_str_with_pid(self) -> None:
        """The pid follows the source when known."""
        entry = LogEntry(level=LogLevel.DEBUG, message="started cat", source="pipeline", pid=7)
        assert str(entry) == "[DEBUG] pipeline[7]: started cat"

    def test_entry_str(self) -> None:
        """String representation should include level, source and message."""
        entry = LogEntry(level=LogLevel.WARNING, message="disk full", source="history")
        assert str(entry) == "[WARNING] history: disk full"


class TestLogger:
    """Verify the logger buffer."""

    def test_starts_empty(self) -> None:
        """A new logger has no entries."""
        assert Logger().entries == []

    def test_log_appends(self) -> None:
        """Entries are kept in order."""
        logger = Logger()
        logger.log(LogLevel.INFO, "first", source="a")
        logger.log(LogLevel.ERROR, "second", source="b")
        assert [e.message for e in logger.entries] == ["first", "second"]

    def test_capacity_drops_oldest(self) -> None:
        """A full log discards its oldest entries first."""
        logger = Logger(capacity=2)
        for message in ("one", "two", "three"):
            logger.log(LogLevel.INFO, message, source="a")
        assert [e.message for e in logger.entries] == ["two", "three"]

    def test_echo_above_level(self) -> None:
        """Echoing writes only records at or above its level."""
        stream = io.StringIO()
        logger = Logger()
        logger.echo_to(stream)
        logger.log(LogLevel.DEBUG, "noise", source="pipeline")
        logger.log(LogLevel.WARNING, "lost", source="history")
        assert stream.getvalue() == "[WARNING] history: lost\n"
        assert len(logger.entries) == 2

    def test_echo_can_stop(self) -> None:
        """Passing None stops the echo."""
        stream = io.StringIO()
        logger = Logger()
        logger.echo_to(stream)
        logger.echo_to(None)
        logger.log(LogLevel.ERROR, "quiet", source="a")
        assert stream.getvalue() == ""

    def test_filter_by_level(self) -> None:
        """Filtering by level keeps that level and above."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "d", source="a")
        logger.log(LogLevel.WARNING, "w", source="a")
        logger.log(LogLevel.ERROR, "e", source="a")
        assert [e.message for e in logger.filter(min_level=LogLevel.WARNING)] == ["w", "e"]

    def test_filter_by_source(self) -> None:
        """Filtering by source keeps only that component's entries."""
        logger = Logger()
        logger.log(LogLevel.INFO, "x", source="pipeline")
        logger.log(LogLevel.INFO, "y", source="history")
        assert [e.message for e in logger.filter(source="history")] == ["y"]

    def test_entries_is_a_copy(self) -> None:
        """Mutating the returned list does not touch the log."""
        logger = Logger()
        logger.log(LogLevel.INFO, "x", source="a")
        logger.entries.clear()
        logger.filter().clear()
        assert len(logger.entries) == 1

    def test_clear(self) -> None:
        """Clearing removes every entry."""
        logger = Logger()
        logger.log(LogLevel.INFO, "x", source="a")
        logger.clear()
        assert logger.entries == []


def _make_state(tmp_path: Path, **env: str) -> ShellState:
    return ShellState(
        env={"PATH": "", "HOME": str(tmp_path), **env},
        cwd=tmp_path,
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )


class TestShellLogging:
    """Verify what the shell logs while working."""

    def test_not_found_is_logged(self, tmp_path: Path) -> None:
        """A missing command is a pipeline warning."""
        state = _make_state(tmp_path)
        run_line(state, "nosuchcmd")
        warnings = state.logger.filter(min_level=LogLevel.WARNING, source="pipeline")
        assert [e.message for e in warnings] == ["command not found: nosuchcmd"]

    def test_builtin_is_logged(self, tmp_path: Path) -> None:
        """Builtin dispatch is recorded at debug level."""
        state = _make_state(tmp_path)
        run_line(state, "echo hi")
        assert any(e.message == "builtin echo" for e in state.logger.filter(source="pipeline"))

    @pytest.mark.skipif(not Path("/bin/sh").exists(), reason="needs /bin/sh")
    def test_process_start_has_pid(self, tmp_path: Path) -> None:
        """Starting a program records its pid."""
        state = _make_state(tmp_path, PATH="/bin")
        run_line(state, "sh -c true")
        started = [e for e in state.logger.entries if e.message == "started sh"]
        assert len(started) == 1
        assert started[0].pid is not None

    def test_unsaved_history_is_an_error(self, tmp_path: Path) -> None:
        """Failing to write $HISTFILE is logged, not raised."""
        state = _make_state(tmp_path, HISTFILE=str(tmp_path / "missing" / "hist"))
        state.history.append("echo hi")
        state.flush_history()
        errors = state.logger.filter(min_level=LogLevel.ERROR, source="history")
        assert len(errors) == 1

    def test_missing_history_is_info(self, tmp_path: Path) -> None:
        """A missing $HISTFILE at start-up is only informational."""
        state = _make_state(tmp_path, HISTFILE=str(tmp_path / "none"))
        assert state.load_history() == 0
        assert [e.level for e in state.logger.filter(source="history")] == [LogLevel.INFO]


def _output(state: ShellState) -> str:
    assert isinstance(state.stdout, io.StringIO)
    return state.stdout.getvalue()


def _errors(state: ShellState) -> str:
    assert isinstance(state.stderr, io.StringIO)
    return state.stderr.getvalue()


class TestLogCommand:
    """Verify the log builtin."""

    def test_shows_entries(self, tmp_path: Path) -> None:
        """Recorded problems can be read back."""
        state = _make_state(tmp_path)
        run_line(state, "nosuchcmd")
        run_line(state, "log warning")
        assert "[WARNING] pipeline: command not found: nosuchcmd\n" in _output(state)

    def test_level_hides_debug(self, tmp_path: Path) -> None:
        """A minimum level leaves out chattier records."""
        state = _make_state(tmp_path)
        run_line(state, "echo hi")
        run_line(state, "log error")
        assert _output(state) == "hi\nNo log entries.\n"

    def test_clear(self, tmp_path: Path) -> None:
        """``log -c`` empties the log."""
        state = _make_state(tmp_path)
        run_line(state, "nosuchcmd")
        assert run_line(state, "log -c") == 0
        assert state.logger.filter(min_level=LogLevel.INFO) == []

    def test_bad_level(self, tmp_path: Path) -> None:
        """An unknown level is an error."""
        state = _make_state(tmp_path)
        assert run_line(state, "log loud") == 1
        assert _errors(state) == "log: unknown log level 'loud'\n"


class TestDebugEcho:
    """Verify $AI_SHELL_DEBUG."""

    def test_off_by_default(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Without the variable records stay in the log only."""
        state = ShellState.from_environ({"PATH": "", "HOME": str(tmp_path)})
        state.logger.log(LogLevel.ERROR, "cannot save history", source="history")
        assert capsys.readouterr().err == ""

    def test_echoes_warnings(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Any value echoes warnings and errors to stderr as they happen."""
        state = ShellState.from_environ({"PATH": "", "HOME": str(tmp_path), "AI_SHELL_DEBUG": "1"})
        state.logger.log(LogLevel.DEBUG, "started cat", source="pipeline")
        state.logger.log(LogLevel.ERROR, "cannot save history", source="history")
        assert capsys.readouterr().err == "[ERROR] history: cannot save history\n"

    def test_debug_echoes_everything(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """``debug`` echoes every level."""
        env = {"PATH": "", "HOME": str(tmp_path), "AI_SHELL_DEBUG": "debug"}
        state = ShellState.from_environ(env)
        state.logger.log(LogLevel.DEBUG, "started cat", source="pipeline", pid=5)
        assert capsys.readouterr().err == "[DEBUG] pipeline[5]: started cat\n"
