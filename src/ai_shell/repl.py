"""Interactive REPL (Read-Eval-Print Loop) for the shell.

The REPL is the terminal front end.  It builds a session from the
process environment, loads ``$HISTFILE``, wires up tab completion, and
cycles through its phases:

    PROMPTING → READING → DISPATCHING → PROMPTING …

until ``exit``, Ctrl+D or Ctrl+C at the prompt moves it to TERMINATED.
Every way out saves the history when ``$HISTFILE`` is set.

Ctrl+C while a command runs does not end the shell: external processes
receive the interrupt (see ``pipeline``), a builtin is abandoned, and
the REPL goes back to the prompt.

``Repl`` takes its line reader as a parameter so the loop can be driven
by a scripted reader in tests; ``run()`` is the I/O entrypoint.
"""

import readline
import sys
from collections.abc import Callable
from enum import StrEnum

from ai_shell import __version__
from ai_shell.ai import ChatClient
from ai_shell.builtins import BUILTINS, ShellExit
from ai_shell.completer import Completer
from ai_shell.shell import Shell
from ai_shell.state import ShellState

PROMPT = "$ "

# Exit status after Ctrl+C (128 + SIGINT).
STATUS_INTERRUPTED = 130

_BANNER_WIDTH = 38


class Phase(StrEnum):
    """Where the REPL is in its cycle."""

    PROMPTING = "prompting"
    READING = "reading"
    DISPATCHING = "dispatching"
    TERMINATED = "terminated"


def format_banner() -> str:
    """Return the welcome banner shown on an interactive terminal."""
    border = "=" * _BANNER_WIDTH
    return (
        f"  {border}\n"
        f"            ai-shell v{__version__}\n"
        f"  Type 'help' for commands, 'exit' to quit.\n"
        f"  {border}\n"
    )


class Repl:
    """The read-dispatch loop around one shell."""

    def __init__(
        self,
        shell: Shell,
        *,
        read_line: Callable[[str], str] = input,
        prompt: str = PROMPT,
    ) -> None:
        """Create a REPL.

        Args:
            shell: The shell that executes each line.
            read_line: Displays the prompt and returns one line; raises
                ``EOFError`` on end of input and ``KeyboardInterrupt``
                on Ctrl+C (``input`` does both).
            prompt: The prompt string.

        """
        self._shell = shell
        self._read_line = read_line
        self._prompt = prompt
        self._phase = Phase.PROMPTING

    @property
    def phase(self) -> Phase:
        """Return the current phase."""
        return self._phase

    def run(self) -> int:
        """Loop until the shell terminates.

        Returns:
            The exit code for the process.

        """
        state = self._shell.state
        while True:
            self._phase = Phase.PROMPTING
            state.stdout.flush()
            self._phase = Phase.READING
            try:
                line = self._read_line(self._prompt)
            except EOFError:
                # Ctrl+D
                state.stdout.write("\n")
                return self._terminate(0)
            except KeyboardInterrupt:
                state.stdout.write("\n")
                return self._terminate(STATUS_INTERRUPTED)

            self._phase = Phase.DISPATCHING
            try:
                self._shell.execute(line)
            except ShellExit as e:
                # exit has already saved the history.
                self._phase = Phase.TERMINATED
                return e.code
            except KeyboardInterrupt:
                state.stderr.write("\n")
                state.last_status = STATUS_INTERRUPTED

    def _terminate(self, code: int) -> int:
        """Save the history and stop."""
        self._shell.state.flush_history()
        self._phase = Phase.TERMINATED
        return code


def run(chat_client: ChatClient | None = None) -> int:
    """Start an interactive session on the real terminal.

    This is the main entrypoint.  It handles:
    - Building the session from the environment and loading history.
    - Tab completion via readline.
    - The read-dispatch loop.
    - Clean shutdown on exit, Ctrl+C and Ctrl+D.

    Args:
        chat_client: The model binding behind ``ai`` and ``config list
            models``.  The console script passes none, so those commands
            report that no client is configured.

    Returns:
        The exit code for the process.
    """
    state = ShellState.from_environ()
    state.chat_client = chat_client
    state.load_history()
    shell = Shell(state)

    completer = Completer(BUILTINS, lambda: state.path_dirs, prompt=PROMPT)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")

    if sys.stdin.isatty():
        print(format_banner())  # noqa: T201

    return Repl(shell).run()
