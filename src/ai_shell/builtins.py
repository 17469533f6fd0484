"""Builtin commands — implemented inside the interpreter.

Every builtin is a plain function with the same contract::

    handler(state, args, out, err) -> Outcome

``args`` excludes the command name.  Output goes to the injected
``out``/``err`` sinks only, so the executor can point them at the
terminal, a redirection file, or a pipeline coupler without the handler
knowing.  Failures are reported on ``err`` and signalled by
``Outcome.FAILURE``; handlers do not raise, except ``exit`` which raises
``ShellExit`` to unwind to the REPL.

The table is built once, at import time, in ``BUILTINS``.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum
from typing import TYPE_CHECKING, TypeAlias

from ai_shell.ai import converse
from ai_shell.config import ConfigError
from ai_shell.logging import LogLevel
from ai_shell.resolver import ResolutionKind, resolve

if TYPE_CHECKING:
    from ai_shell.sinks import Sink
    from ai_shell.state import ShellState


class Outcome(IntEnum):
    """Result of a builtin, usable directly as an exit status."""

    SUCCESS = 0
    FAILURE = 1


class ShellExit(Exception):  # noqa: N818
    """Raised by ``exit`` to stop the REPL with an exit code."""

    def __init__(self, code: int = 0) -> None:
        """Record the requested exit *code*."""
        super().__init__(f"exit {code}")
        self.code = code


Handler: TypeAlias = "Callable[[ShellState, list[str], Sink, Sink], Outcome]"


def _cmd_exit(state: ShellState, args: list[str], _out: Sink, _err: Sink) -> Outcome:
    """Save history and stop the shell."""
    try:
        code = int(args[0]) if args else 0
    except ValueError:
        code = 0
    state.flush_history()
    raise ShellExit(code)


def _cmd_echo(_state: ShellState, args: list[str], out: Sink, _err: Sink) -> Outcome:
    """Print the arguments separated by single spaces."""
    newline = "\n"
    if args and args[0] == "-n":
        newline = ""
        args = args[1:]
    out.write(" ".join(args) + newline)
    return Outcome.SUCCESS


def _cmd_pwd(state: ShellState, _args: list[str], out: Sink, _err: Sink) -> Outcome:
    """Print the working directory."""
    out.write(f"{state.cwd}\n")
    return Outcome.SUCCESS


def _cmd_cd(state: ShellState, args: list[str], _out: Sink, err: Sink) -> Outcome:
    """Change the working directory.

    All arguments are joined with spaces so ``cd My Documents`` works
    without quoting.  No argument, or ``~``, means the home directory.
    """
    target = " ".join(args)
    if not target or target == "~":
        if state.home is None:
            err.write("cd: HOME not set\n")
            return Outcome.FAILURE
        path = state.home
    else:
        path = state.resolve_path(target)

    if not path.exists():
        err.write(f"cd: {target or path}: No such file or directory\n")
        return Outcome.FAILURE
    if not path.is_dir():
        err.write(f"cd: {target}: Not a directory\n")
        return Outcome.FAILURE
    state.cwd = path.resolve()
    return Outcome.SUCCESS


def _cmd_type(state: ShellState, args: list[str], out: Sink, err: Sink) -> Outcome:
    """Report how each name would be resolved."""
    if not args:
        err.write("type: usage: type name [name ...]\n")
        return Outcome.FAILURE
    outcome = Outcome.SUCCESS
    for name in args:
        found = resolve(name, builtins=BUILTINS, path_dirs=state.path_dirs, cwd=state.cwd)
        if found.kind is ResolutionKind.BUILTIN:
            out.write(f"{name} is a shell builtin\n")
        elif found.kind is ResolutionKind.EXTERNAL:
            out.write(f"{name} is {found.path}\n")
        else:
            err.write(f"{name}: not found\n")
            outcome = Outcome.FAILURE
    return outcome


def _cmd_history(state: ShellState, args: list[str], out: Sink, err: Sink) -> Outcome:
    """Show, clear, read, write or append the command history."""
    history = state.history

    if not args:
        for number, entry in history.numbered():
            out.write(f"{number:>5}  {entry}\n")
        return Outcome.SUCCESS

    flag = args[0]
    if flag == "-c":
        history.clear()
        return Outcome.SUCCESS

    if flag in ("-r", "-w", "-a"):
        if len(args) > 1:
            path = state.resolve_path(args[1])
        elif state.histfile is not None:
            path = state.histfile
        else:
            err.write(f"history: {flag}: missing file operand\n")
            return Outcome.FAILURE
        try:
            if flag == "-r":
                history.read(path)
            elif flag == "-w":
                history.write(path)
            else:
                history.append_to(path)
        except OSError as e:
            err.write(f"history: {args[1] if len(args) > 1 else path}: {e.strerror or e}\n")
            return Outcome.FAILURE
        return Outcome.SUCCESS

    try:
        count = int(flag)
    except ValueError:
        err.write(f"history: {flag}: numeric argument required\n")
        return Outcome.FAILURE
    for number, entry in history.numbered(last=max(count, 0)):
        out.write(f"{number:>5}  {entry}\n")
    return Outcome.SUCCESS


def _cmd_config(  # noqa: PLR0911
    state: ShellState, args: list[str], out: Sink, err: Sink
) -> Outcome:
    """Read and change persisted settings."""
    usage = "config: usage: config get | config set model <name> | config list models\n"
    if state.config is None:
        err.write("config: no configuration store\n")
        return Outcome.FAILURE

    if args == ["get"]:
        for key, value in sorted(state.config.get().items()):
            out.write(f"{key}: {value}\n")
        return Outcome.SUCCESS

    if args == ["list", "models"]:
        if state.chat_client is None:
            err.write("config: no chat client configured\n")
            return Outcome.FAILURE
        for model in state.chat_client.list_models():
            out.write(f"{model}\n")
        return Outcome.SUCCESS

    if len(args) == 3 and args[0] == "set":  # noqa: PLR2004
        key, value = args[1], args[2]
        if (
            key == "model"
            and state.chat_client is not None
            and value not in state.chat_client.list_models()
        ):
            err.write(f"config: unknown model '{value}'\n")
            return Outcome.FAILURE
        try:
            state.config.set(key, value)
        except ConfigError as e:
            err.write(f"config: {e}\n")
            return Outcome.FAILURE
        out.write(f"Configuration updated: {key} has been set.\n")
        return Outcome.SUCCESS

    err.write(usage)
    return Outcome.FAILURE


def _cmd_ai(state: ShellState, args: list[str], out: Sink, err: Sink) -> Outcome:
    """Ask the chat model; it may run shell commands to answer."""
    from ai_shell.pipeline import run_shell_command  # noqa: PLC0415

    if state.chat_client is None:
        err.write("ai: no chat client configured\n")
        return Outcome.FAILURE
    prompt = " ".join(args)
    if not prompt:
        err.write("ai: usage: ai <question>\n")
        return Outcome.FAILURE
    try:
        answered = converse(
            state.chat_client,
            prompt,
            run_command=lambda line: run_shell_command(state, line),
            out=out,
        )
    except (OSError, ValueError, RuntimeError) as e:
        err.write(f"ai: {e}\n")
        return Outcome.FAILURE
    if not answered:
        err.write("ai: no answer within the step limit\n")
        return Outcome.FAILURE
    return Outcome.SUCCESS


def _cmd_log(state: ShellState, args: list[str], out: Sink, err: Sink) -> Outcome:
    """Show the diagnostics log, optionally from a minimum level; ``-c`` clears it."""
    if args == ["-c"]:
        state.logger.clear()
        return Outcome.SUCCESS
    if len(args) > 1:
        err.write("log: usage: log [-c | debug | info | warning | error]\n")
        return Outcome.FAILURE
    try:
        min_level = LogLevel.parse(args[0]) if args else None
    except ValueError as e:
        err.write(f"log: {e}\n")
        return Outcome.FAILURE
    entries = state.logger.filter(min_level=min_level)
    if not entries:
        out.write("No log entries.\n")
    for entry in entries:
        out.write(f"{entry}\n")
    return Outcome.SUCCESS


# Command dispatch table — maps command names to handlers.
BUILTINS: dict[str, Handler] = {
    "exit": _cmd_exit,
    "echo": _cmd_echo,
    "pwd": _cmd_pwd,
    "cd": _cmd_cd,
    "type": _cmd_type,
    "history": _cmd_history,
    "config": _cmd_config,
    "log": _cmd_log,
    "ai": _cmd_ai,
    "gemini": _cmd_ai,
}
