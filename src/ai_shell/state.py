"""Shell state — everything one interpreter session can mutate.

All mutable session data lives on one ``ShellState`` object that is
handed to every builtin and to the executor: the history and its
watermark, the working directory, the environment snapshot, the
terminal streams, and the external collaborators.  Nothing is kept in
module globals.

The working directory is a field, not the process-wide cwd: ``cd``
updates ``state.cwd`` and child processes are started with
``cwd=state.cwd``.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from ai_shell.config import ConfigStore, default_config_path
from ai_shell.history import History
from ai_shell.logging import Logger, LogLevel

if TYPE_CHECKING:
    from ai_shell.ai import ChatClient


@dataclass
class ShellState:
    """Mutable state of one interpreter session."""

    env: dict[str, str] = field(default_factory=dict)
    cwd: Path = field(default_factory=Path.cwd)
    history: History = field(default_factory=History)
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    stderr: TextIO = field(default_factory=lambda: sys.stderr)
    logger: Logger = field(default_factory=Logger)
    config: ConfigStore | None = None
    chat_client: ChatClient | None = None
    last_status: int = 0

    @classmethod
    def from_environ(cls, environ: dict[str, str] | None = None) -> ShellState:
        """Snapshot the process environment into a new session.

        Args:
            environ: Variables to use instead of ``os.environ``.

        """
        env = dict(os.environ if environ is None else environ)
        state = cls(env=env, config=ConfigStore(default_config_path(env)))
        debug = env.get("AI_SHELL_DEBUG")
        if debug:
            level = LogLevel.DEBUG if debug.lower() == "debug" else LogLevel.WARNING
            state.logger.echo_to(state.stderr, min_level=level)
        return state

    @property
    def path_dirs(self) -> list[str]:
        """Return the ``PATH`` directories in search order."""
        value = self.env.get("PATH", "")
        return [d for d in value.split(os.pathsep) if d]

    @property
    def home(self) -> Path | None:
        """Return the home directory (``HOME``, else ``USERPROFILE``)."""
        value = self.env.get("HOME") or self.env.get("USERPROFILE")
        return Path(value) if value else None

    @property
    def histfile(self) -> Path | None:
        """Return ``$HISTFILE`` resolved against the cwd, if set."""
        value = self.env.get("HISTFILE")
        return self.resolve_path(value) if value else None

    def resolve_path(self, path: str) -> Path:
        """Resolve a user-typed path: expand ``~`` and anchor at ``cwd``."""
        home = self.home
        if home is not None and (path == "~" or path.startswith("~/")):
            path = str(home) + path[1:]
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.cwd / candidate
        return candidate

    def load_history(self) -> int:
        """Load ``$HISTFILE`` into the history at start-up.

        A missing or unreadable file is not an error; it is logged.

        Returns:
            The number of entries loaded.

        """
        histfile = self.histfile
        if histfile is None:
            return 0
        try:
            count = self.history.load(histfile)
        except OSError as e:
            self.logger.log(LogLevel.INFO, f"no history loaded: {e}", source="history")
            return 0
        self.logger.log(LogLevel.DEBUG, f"loaded {count} entries from {histfile}", source="history")
        return count

    def flush_history(self) -> None:
        """Write the full history to ``$HISTFILE`` on shutdown (best effort)."""
        histfile = self.histfile
        if histfile is None:
            return
        try:
            self.history.write(histfile)
        except OSError as e:
            self.logger.log(LogLevel.ERROR, f"cannot save history: {e}", source="history")
