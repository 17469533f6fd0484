"""Interpreter diagnostics log.

The shell records what it did behind the user's back: which commands
were dispatched, which processes failed to start, and which history
writes were lost.  None of these interrupt the user, so they land in a
bounded in-memory buffer that the ``log`` builtin prints on demand.

Setting ``$AI_SHELL_DEBUG`` also echoes each record to the terminal's
error stream as it is made (every level when the value is ``debug``,
otherwise warnings and errors only).

- **LogLevel** — severities ordered for filtering (DEBUG < ERROR).
- **LogEntry** — one record (level, message, source, pid).
- **Logger** — the buffer; oldest records fall off once it is full.
"""

from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import TextIO

# Records kept before the oldest are discarded.
DEFAULT_CAPACITY = 1000


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3

    @classmethod
    def parse(cls, name: str) -> "LogLevel":
        """Look a level up by name, ignoring case.

        Raises:
            ValueError: If *name* is not a level.

        """
        try:
            return cls[name.upper()]
        except KeyError:
            msg = f"unknown log level '{name}'"
            raise ValueError(msg) from None


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: What happened.
        source: The component that reported it ("pipeline", "history").
        pid: The OS process the event concerns, if any.

    """

    level: LogLevel
    message: str
    source: str
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message`` with the pid when known."""
        where = self.source if self.pid is None else f"{self.source}[{self.pid}]"
        return f"[{self.level.name}] {where}: {self.message}"


class Logger:
    """Bounded log buffer with filtering and an optional live echo."""

    def __init__(self, *, capacity: int = DEFAULT_CAPACITY) -> None:
        """Create an empty logger holding at most *capacity* records."""
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._echo: TextIO | None = None
        self._echo_level = LogLevel.WARNING

    @property
    def entries(self) -> list[LogEntry]:
        """Return the kept entries, oldest first."""
        return list(self._entries)

    def echo_to(self, stream: TextIO | None, *, min_level: LogLevel = LogLevel.WARNING) -> None:
        """Also write new records at or above *min_level* to *stream* (None stops)."""
        self._echo = stream
        self._echo_level = min_level

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int | None = None,
    ) -> None:
        """Record one event."""
        entry = LogEntry(level=level, message=message, source=source, pid=pid)
        self._entries.append(entry)
        if self._echo is not None and level >= self._echo_level:
            self._echo.write(f"{entry}\n")
            self._echo.flush()

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        """
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level)
            and (source is None or e.source == source)
        ]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
