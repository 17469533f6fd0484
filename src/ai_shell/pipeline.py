"""Pipeline executor — run one input line as a chain of stages.

A line is split on unquoted ``|`` into **stages**.  Each stage is either
a builtin (run in-process) or an external program (``subprocess``).  A
plain command is just a pipeline with one stage.

Wiring for N stages:

    stage 0 ──coupler 0──▶ stage 1 ──coupler 1──▶ … ──▶ stage N-1 ──▶ terminal

A **coupler** is an ``os.pipe()``.  The parent closes its copy of each
end as soon as the end is handed to a stage, so a stage that exits (or
never starts) delivers EOF downstream instead of leaving it waiting.

Execution order:
    1. Every external stage is spawned, left to right; they all run
       concurrently as OS processes.
    2. Builtin stages run in order on the calling thread.  Builtins never
       read standard input, so a builtin's upstream coupler is closed
       right away (the writer sees a broken pipe, like ``SIGPIPE``).
    3. Output bound for a stream with no real file descriptor (a
       ``StringIO`` in tests, a capture buffer) is read by pump threads
       into a queue and written to its sink on the calling thread.
    4. Every process is waited for.  Control returns only when all
       stages have completed.

Ctrl+C while waiting sends SIGINT to the programs still running and
keeps waiting.  Ctrl+C inside a builtin does the same, marks the
builtins that never ran as interrupted (status 130), and re-raises once
every program has exited.

Only the last stage's redirections are applied; earlier stages always
write to their coupler, and in a multi-stage pipeline earlier stages'
stderr goes to the terminal.
"""

from __future__ import annotations

import io
import os
import queue
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import IO, TYPE_CHECKING, TextIO

from ai_shell.builtins import BUILTINS, ShellExit
from ai_shell.logging import LogLevel
from ai_shell.redirection import RedirectionError, RedirectMode, Redirections, extract
from ai_shell.resolver import ResolutionKind, fallback_shell, resolve
from ai_shell.sinks import Sink
from ai_shell.tokenizer import split_pipeline, tokenize

if TYPE_CHECKING:
    from ai_shell.state import ShellState

# Exit status for a command that could not be found.
STATUS_NOT_FOUND = 127

# Exit status for a program that was found but could not be started.
STATUS_CANNOT_RUN = 126

# Exit status base for a process killed by a signal (128 + signo).
_SIGNAL_STATUS_BASE = 128

STATUS_INTERRUPTED = _SIGNAL_STATUS_BASE + signal.SIGINT

_PUMP_CHUNK = 65536


class PipelineError(ValueError):
    """Raise when a line cannot be parsed into stages."""


class StageKind(StrEnum):
    """How a stage is executed."""

    BUILTIN = "builtin"
    EXTERNAL = "external"


@dataclass
class Stage:
    """One command of a pipeline."""

    command: str
    args: list[str]
    kind: StageKind
    text: str = ""
    path: Path | None = None
    redirections: Redirections = field(default_factory=Redirections)


@dataclass(frozen=True)
class StageResult:
    """How one stage finished."""

    command: str
    status: int
    pid: int | None = None


def parse_pipeline(line: str, state: ShellState) -> list[Stage]:
    """Split *line* into resolved stages.

    Args:
        line: The raw input line.
        state: Supplies ``PATH`` and the working directory for resolution.

    Returns:
        The stages, or an empty list for a blank line.

    Raises:
        PipelineError: On an empty pipe segment, a missing redirection
            operand, or redirections with no command.

    """
    segments = split_pipeline(line)
    if len(segments) == 1 and not segments[0]:
        return []
    if any(not segment for segment in segments):
        msg = "syntax error near unexpected token `|'"
        raise PipelineError(msg)

    stages: list[Stage] = []
    for segment in segments:
        try:
            args, redirects = extract(tokenize(segment))
        except RedirectionError as e:
            raise PipelineError(str(e)) from e
        if not args:
            msg = f"syntax error: no command in '{segment}'"
            raise PipelineError(msg)

        name = str(args[0])
        found = resolve(name, builtins=BUILTINS, path_dirs=state.path_dirs, cwd=state.cwd)
        kind = StageKind.BUILTIN if found.kind is ResolutionKind.BUILTIN else StageKind.EXTERNAL
        stages.append(
            Stage(
                command=name,
                args=[str(a) for a in args[1:]],
                kind=kind,
                text=segment,
                path=found.path,
                redirections=redirects,
            )
        )
    return stages


class _OutputPump:
    """Move process output into sinks on the controller thread.

    Reader threads only ``os.read`` and enqueue.  ``drain()`` runs on
    the controller thread and performs every sink write, so sinks are
    never touched concurrently.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[tuple[Sink, bytes | None]] = queue.Queue()
        self._active = 0

    def attach(self, stream: IO[bytes], sink: Sink) -> None:
        """Start a reader thread copying *stream* into *sink*."""
        self._active += 1
        thread = threading.Thread(target=self._read, args=(stream, sink), daemon=True)
        thread.start()

    def _read(self, stream: IO[bytes], sink: Sink) -> None:
        try:
            fd = stream.fileno()
            while chunk := os.read(fd, _PUMP_CHUNK):
                self._queue.put((sink, chunk))
        finally:
            stream.close()
            self._queue.put((sink, None))

    def drain(self) -> None:
        """Write queued output until every attached stream hits EOF."""
        while self._active:
            sink, chunk = self._queue.get()
            if chunk is None:
                self._active -= 1
            else:
                sink.write_bytes(chunk)


class Pipeline:
    """Execute a list of stages with their streams wired together."""

    def __init__(
        self,
        state: ShellState,
        stages: list[Stage],
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        """Prepare a pipeline.

        Args:
            state: The session state (cwd, env, terminal streams, logger).
            stages: At least one stage.
            stdout: Use instead of ``state.stdout`` as the terminal output.
            stderr: Use instead of ``state.stderr`` as the terminal errors.

        Raises:
            ValueError: If *stages* is empty.

        """
        if not stages:
            msg = "a pipeline needs at least one stage"
            raise ValueError(msg)
        self._state = state
        self._stages = stages
        self._terminal_out = Sink.terminal(stdout if stdout is not None else state.stdout)
        self._terminal_err = Sink.terminal(stderr if stderr is not None else state.stderr)
        self._results: list[StageResult | None] = [None] * len(stages)
        self._remaining = len(stages)
        self._open_fds: set[int] = set()
        self._pump = _OutputPump()

    @property
    def results(self) -> list[StageResult | None]:
        """Return each stage's result (None until the stage completes)."""
        return list(self._results)

    @property
    def remaining(self) -> int:
        """Return how many stages have not completed yet."""
        return self._remaining

    def run(self) -> int:
        """Run every stage and wait for all of them.

        Returns:
            The exit status of the last stage.

        Raises:
            ShellExit: If a lone ``exit`` builtin asked the shell to stop.
            KeyboardInterrupt: If Ctrl+C hit a builtin stage; raised only
                after every started program has exited.

        """
        last = self._stages[-1]
        try:
            out, err, owned = self._open_redirections(last.redirections)
        except OSError as e:
            self._terminal_err.write(f"{e.filename}: {e.strerror}\n")
            self._terminal_err.flush()
            return 1

        count = len(self._stages)
        couplers = [os.pipe() for _ in range(count - 1)]
        for read_fd, write_fd in couplers:
            self._open_fds.update((read_fd, write_fd))

        procs: dict[int, subprocess.Popen[bytes]] = {}
        try:
            for i, stage in enumerate(self._stages):
                upstream = couplers[i - 1][0] if i > 0 else None
                downstream = couplers[i][1] if i < count - 1 else None
                if stage.kind is StageKind.EXTERNAL:
                    stage_err = err if i == count - 1 else self._terminal_err
                    merge = i == count - 1 and _merges_stderr(last.redirections)
                    proc = self._spawn(i, stage, upstream, downstream, out, stage_err, merge=merge)
                    if proc is not None:
                        procs[i] = proc
                elif upstream is not None:
                    self._close_fd(upstream)

            try:
                for i, stage in enumerate(self._stages):
                    if stage.kind is StageKind.BUILTIN:
                        downstream = couplers[i][1] if i < count - 1 else None
                        stage_err = err if i == count - 1 else self._terminal_err
                        self._run_builtin(i, stage, downstream, out, stage_err)
            except KeyboardInterrupt:
                # Builtins left unrun never start; programs already running
                # get the interrupt and are still waited for.
                for i, stage in enumerate(self._stages):
                    if stage.kind is StageKind.BUILTIN:
                        self._complete(i, STATUS_INTERRUPTED, only_if_pending=True)
                for fd in list(self._open_fds):
                    self._close_fd(fd)
                _interrupt(procs)
                self._join(procs)
                raise

            self._join(procs)
        finally:
            for fd in list(self._open_fds):
                self._close_fd(fd)
            for sink in owned:
                sink.close()
            self._terminal_out.flush()
            self._terminal_err.flush()

        final = self._results[-1]
        return final.status if final is not None else 1

    # -- wiring ------------------------------------------------------------

    def _open_redirections(self, redirects: Redirections) -> tuple[Sink, Sink, list[Sink]]:
        """Build the last stage's output and error sinks."""
        out, err = self._terminal_out, self._terminal_err
        owned: list[Sink] = []
        try:
            if redirects.stdout is not None and redirects.stdout.target is not None:
                path = self._state.resolve_path(redirects.stdout.target)
                out = Sink.open_file(path, redirects.stdout.mode.value)
                owned.append(out)
            if redirects.stderr is not None:
                if redirects.stderr.mode is RedirectMode.MERGE:
                    err = out
                elif redirects.stderr.target is not None:
                    path = self._state.resolve_path(redirects.stderr.target)
                    err = Sink.open_file(path, redirects.stderr.mode.value)
                    owned.append(err)
        except OSError:
            for sink in owned:
                sink.close()
            raise
        return out, err, owned

    def _close_fd(self, fd: int) -> None:
        if fd in self._open_fds:
            self._open_fds.discard(fd)
            os.close(fd)

    def _complete(
        self, index: int, status: int, pid: int | None = None, *, only_if_pending: bool = False
    ) -> None:
        """Record that stage *index* has finished."""
        if self._results[index] is not None and only_if_pending:
            return
        if self._results[index] is None:
            self._remaining -= 1
        self._results[index] = StageResult(self._stages[index].command, status, pid)

    def _target(self, sink: Sink) -> int:
        """Return an fd for a child to write to *sink*, or PIPE to pump it."""
        sink.flush()
        fd = sink.fileno()
        return subprocess.PIPE if fd is None else fd

    # -- stages ------------------------------------------------------------

    def _spawn(  # noqa: PLR0913
        self,
        index: int,
        stage: Stage,
        upstream: int | None,
        downstream: int | None,
        out: Sink,
        err: Sink,
        *,
        merge: bool,
    ) -> subprocess.Popen[bytes] | None:
        """Start an external stage; report and complete it if it cannot start."""
        argv = [stage.command, *stage.args]
        executable = stage.path
        if executable is None:
            shell = fallback_shell(self._state.env)
            if shell is None:
                self._not_found(index, stage, err)
                self._close_handed(upstream, downstream)
                return None
            argv, executable = [str(shell), "/c", stage.text], shell

        if upstream is not None:
            stdin: int | None = upstream
        else:
            stdin = subprocess.DEVNULL if len(self._stages) > 1 else None
        stdout = downstream if downstream is not None else self._target(out)
        stderr = subprocess.STDOUT if merge else self._target(err)

        try:
            proc = subprocess.Popen(  # noqa: S603
                argv,
                executable=executable,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                cwd=self._state.cwd,
                env=self._state.env,
            )
        except OSError as e:
            self._state.logger.log(
                LogLevel.WARNING, f"cannot start {stage.command}: {e}", source="pipeline"
            )
            if stage.path is None:
                self._not_found(index, stage, err)
            else:
                # Found but not runnable: permissions, bad format, vanished cwd.
                err.write(f"{stage.command}: {e.strerror or e}\n")
                err.flush()
                self._complete(index, STATUS_CANNOT_RUN)
            return None
        finally:
            self._close_handed(upstream, downstream)

        self._state.logger.log(
            LogLevel.DEBUG, f"started {stage.command}", source="pipeline", pid=proc.pid
        )
        if proc.stdout is not None:
            self._pump.attach(proc.stdout, out)
        if proc.stderr is not None:
            self._pump.attach(proc.stderr, err)
        return proc

    def _close_handed(self, upstream: int | None, downstream: int | None) -> None:
        for fd in (upstream, downstream):
            if fd is not None:
                self._close_fd(fd)

    def _not_found(self, index: int, stage: Stage, err: Sink) -> None:
        err.write(f"{stage.command}: command not found\n")
        err.flush()
        self._state.logger.log(
            LogLevel.WARNING, f"command not found: {stage.command}", source="pipeline"
        )
        self._complete(index, STATUS_NOT_FOUND)

    def _run_builtin(
        self,
        index: int,
        stage: Stage,
        downstream: int | None,
        out: Sink,
        err: Sink,
    ) -> None:
        """Run a builtin stage on the calling thread."""
        handler = BUILTINS[stage.command]
        sink = out
        if downstream is not None:
            self._open_fds.discard(downstream)
            sink = Sink.coupler(downstream)
        self._state.logger.log(LogLevel.DEBUG, f"builtin {stage.command}", source="pipeline")
        try:
            status = int(handler(self._state, stage.args, sink, err))
        except ShellExit as e:
            # A lone exit stops the shell; inside a pipeline it only ends its stage.
            self._complete(index, e.code)
            if len(self._stages) == 1:
                raise
            return
        finally:
            if sink is not out:
                sink.close()
            else:
                sink.flush()
            err.flush()
        self._complete(index, status)

    def _join(self, procs: dict[int, subprocess.Popen[bytes]]) -> None:
        """Wait for pumped output and every process.

        Ctrl+C while waiting is forwarded to the processes that are still
        running; waiting then continues until they have all exited.
        """
        while True:
            try:
                self._pump.drain()
                for index, proc in procs.items():
                    self._complete(index, _exit_status(proc.wait()), proc.pid)
            except KeyboardInterrupt:
                _interrupt(procs)
            else:
                return


def _interrupt(procs: dict[int, subprocess.Popen[bytes]]) -> None:
    """Send SIGINT to every process that has not exited yet."""
    for proc in procs.values():
        if proc.poll() is None:
            proc.send_signal(signal.SIGINT)


def _merges_stderr(redirects: Redirections) -> bool:
    return redirects.stderr is not None and redirects.stderr.mode is RedirectMode.MERGE


def _exit_status(returncode: int) -> int:
    """Map ``Popen.returncode`` to a shell status (signals become 128+n)."""
    if returncode < 0:
        return _SIGNAL_STATUS_BASE - returncode
    return returncode


def run_line(state: ShellState, line: str) -> int:
    """Parse and run *line*, reporting parse errors on ``state.stderr``.

    Returns:
        The exit status of the line (2 for a parse error).

    Raises:
        ShellExit: If the line was a lone ``exit``.

    """
    try:
        stages = parse_pipeline(line, state)
    except PipelineError as e:
        state.stderr.write(f"ai-shell: {e}\n")
        state.stderr.flush()
        return 2
    if not stages:
        return state.last_status
    return Pipeline(state, stages).run()


def run_shell_command(state: ShellState, line: str) -> str:
    """Run *line* and return everything it wrote to stdout and stderr."""
    buffer = io.StringIO()
    try:
        stages = parse_pipeline(line, state)
    except PipelineError as e:
        return f"ai-shell: {e}\n"
    if not stages:
        return ""
    try:
        Pipeline(state, stages, stdout=buffer, stderr=buffer).run()
    except ShellExit:
        buffer.write("exit: not available here\n")
    return buffer.getvalue()
