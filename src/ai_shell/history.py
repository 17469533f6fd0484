"""Command history — an append-only record of entered lines.

Every non-empty line the user types is appended before it runs.  The
list is never reordered; an entry's number is simply its position
(1-based when shown).

Persistence is opt-in and file-based, one entry per line:

- ``read(path)``  — ``history -r``: append a file's lines.
- ``write(path)`` — ``history -w``: overwrite a file with everything.
- ``append_to(path)`` — ``history -a``: append only what is new.

"What is new" is tracked by the **watermark**: the number of entries
already persisted.  A full write moves the watermark to the current
length, an append advances it, and clearing resets it to zero.
"""

from pathlib import Path


class History:
    """In-memory command history with a persistence watermark."""

    def __init__(self, entries: list[str] | None = None) -> None:
        """Create a history, optionally pre-populated (not marked persisted)."""
        self._entries: list[str] = list(entries) if entries else []
        self._watermark = 0

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)

    @property
    def entries(self) -> list[str]:
        """Return a copy of all entries in arrival order."""
        return list(self._entries)

    @property
    def watermark(self) -> int:
        """Return how many leading entries have already been persisted."""
        return self._watermark

    def append(self, line: str) -> None:
        """Record *line* as the newest entry."""
        self._entries.append(line)

    def clear(self) -> None:
        """Forget every entry and reset the watermark."""
        self._entries.clear()
        self._watermark = 0

    def numbered(self, last: int | None = None) -> list[tuple[int, str]]:
        """Return ``(number, entry)`` pairs, numbered from 1.

        Args:
            last: Only return this many of the newest entries.  Their
                numbers still reflect their true position.

        """
        start = 0 if last is None else max(len(self._entries) - last, 0)
        return [(start + i + 1, entry) for i, entry in enumerate(self._entries[start:])]

    def load(self, path: Path) -> int:
        """Load *path* at start-up and mark the loaded entries as persisted.

        Returns:
            The number of entries loaded.

        Raises:
            OSError: If the file cannot be read.

        """
        count = self.read(path)
        self._watermark = len(self._entries)
        return count

    def read(self, path: Path) -> int:
        """Append every non-blank line of *path*.

        Bytes that are not valid UTF-8 become U+FFFD rather than failing
        the whole read.

        Returns:
            The number of entries appended.

        Raises:
            OSError: If the file cannot be read.

        """
        text = path.read_text(encoding="utf-8", errors="replace")
        lines = [line for line in text.splitlines() if line.strip()]
        self._entries.extend(lines)
        return len(lines)

    def write(self, path: Path) -> None:
        """Overwrite *path* with the full history.

        Raises:
            OSError: If the file cannot be written.

        """
        path.write_text(_as_lines(self._entries), encoding="utf-8")
        self._watermark = len(self._entries)

    def append_to(self, path: Path) -> int:
        """Append the entries after the watermark to *path*.

        Returns:
            The number of entries written (0 means nothing was new and
            the file was not touched).

        Raises:
            OSError: If the file cannot be written.

        """
        pending = self._entries[self._watermark :]
        if not pending:
            return 0
        with path.open("a", encoding="utf-8") as f:
            f.write(_as_lines(pending))
        self._watermark = len(self._entries)
        return len(pending)


def _as_lines(entries: list[str]) -> str:
    return "".join(f"{entry}\n" for entry in entries)
