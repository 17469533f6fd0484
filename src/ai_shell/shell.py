"""The shell — route one input line to the executor.

``Shell.execute(line)`` is the *Dispatching* step of the REPL:

    1. Blank input is ignored (and never reaches the history).
    2. Anything else is appended to the history first, even if it then
       fails to parse or run.
    3. A ``help`` or ``--help`` word anywhere prints the help text
       instead of running anything.
    4. Otherwise the line runs as a pipeline (a plain command is a
       pipeline of one stage) and its exit status is recorded.

The shell does no terminal I/O of its own beyond writing to the
state's streams, which keeps it testable with in-memory streams.
"""

from ai_shell.builtins import ShellExit
from ai_shell.pipeline import run_line
from ai_shell.state import ShellState
from ai_shell.tokenizer import tokenize

HELP_WORDS: frozenset[str] = frozenset(["help", "--help"])

_HELP_TEXT = """\
Built-in commands

  cd [dir]                 change the working directory (default: $HOME)
  pwd                      print the working directory
  echo [-n] <text>         print text; -n suppresses the newline
  type <command>           show whether a command is a builtin or a program
  history [n]              show history, or the last n entries
  history -c               clear the history
  history -r|-w|-a [file]  read, write or append history (default: $HISTFILE)
  config get               show settings
  config set model <name>  choose the AI model
  config list models       list available AI models
  ai <question>            ask the AI assistant (alias: gemini)
  log [level]              show diagnostics (warnings, failed starts, ...)
  log -c                   clear the diagnostics log
  exit [code]              save history and quit

Operators

  cmd1 | cmd2              pipe output of cmd1 into cmd2
  > file, 1> file          write output to file
  >> file, 1>> file        append output to file
  2> file, 2>> file        write or append errors to file
  2>&1                     send errors wherever output goes

The AI commands need a chat client.  The ai-shell program starts without
one; a program embedding the shell passes it to ai_shell.repl.run().
Set AI_SHELL_DEBUG=1 to print warnings as they happen (=debug for all).
"""


def format_help() -> str:
    """Return the static help text."""
    return _HELP_TEXT


class Shell:
    """Command interpreter bound to one session state."""

    def __init__(self, state: ShellState) -> None:
        """Create a shell operating on *state*."""
        self._state = state

    @property
    def state(self) -> ShellState:
        """Return the session state."""
        return self._state

    def execute(self, line: str) -> int:
        """Record and run one input line.

        Args:
            line: The raw text the user entered.

        Returns:
            The exit status of the line.

        Raises:
            ShellExit: If the line asked the shell to exit.

        """
        stripped = line.strip()
        if not stripped:
            return self._state.last_status

        self._state.history.append(stripped)

        if any(word in HELP_WORDS and not word.quoted for word in tokenize(stripped)):
            self._state.stdout.write(format_help())
            self._state.stdout.flush()
            self._state.last_status = 0
            return 0

        try:
            status = run_line(self._state, stripped)
        except ShellExit as e:
            self._state.last_status = e.code
            raise
        self._state.last_status = status
        return status
