"""Sinks — destinations for command output.

Every builtin receives an output sink and an error sink instead of
writing to ``sys.stdout``.  A sink wraps one text stream:

- **terminal** — the interpreter's own stdout/stderr (not owned, never
  closed by the sink).
- **file** — a redirection target opened in truncate or append mode.
- **coupler** — the write end of a pipe feeding the next pipeline stage.
- **buffer** — an in-memory ``StringIO`` used to capture output.

Because the destination is injected, pipelines and redirections work
the same way for builtins and external programs, and nothing has to
swap out process-wide streams.
"""

from __future__ import annotations

import codecs
import io
import os
from pathlib import Path
from typing import TextIO


class Sink:
    """A text destination with an optional real file descriptor.

    A sink that *owns* its stream closes it on ``close()``; a borrowed
    stream (the terminal) is only flushed.  Writing to a coupler whose
    reader has gone away marks the sink broken and silently drops
    further output, the way ``SIGPIPE`` ends a writer in a real shell.
    """

    def __init__(self, stream: TextIO, *, owned: bool = False) -> None:
        """Wrap *stream*.

        Args:
            stream: The text stream to write to.
            owned: Close the stream when the sink is closed.

        """
        self._stream = stream
        self._owned = owned
        self._closed = False
        self._broken = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @classmethod
    def terminal(cls, stream: TextIO) -> Sink:
        """Borrow one of the interpreter's own streams."""
        return cls(stream)

    @classmethod
    def open_file(cls, path: Path, mode: str) -> Sink:
        """Open *path* for a redirection (``"w"`` or ``"a"``).

        Raises:
            OSError: If the file cannot be opened.

        """
        return cls(path.open(mode, encoding="utf-8"), owned=True)

    @classmethod
    def coupler(cls, fd: int) -> Sink:
        """Take ownership of the write end of a pipe."""
        return cls(os.fdopen(fd, "w", encoding="utf-8"), owned=True)

    @classmethod
    def buffer(cls) -> Sink:
        """Create an in-memory sink; read it back with ``getvalue()``."""
        return cls(io.StringIO())

    @property
    def broken(self) -> bool:
        """Return True once the reader on the other end has gone away."""
        return self._broken

    @property
    def closed(self) -> bool:
        """Return True after ``close()``."""
        return self._closed

    def write(self, text: str) -> None:
        """Write *text*, dropping it if the reader has gone away."""
        if self._broken or self._closed:
            return
        try:
            self._stream.write(text)
        except BrokenPipeError:
            self._broken = True

    def write_bytes(self, data: bytes) -> None:
        """Decode raw process output and write it."""
        text = self._decoder.decode(data)
        if text:
            self.write(text)

    def flush(self) -> None:
        """Flush buffered text to the underlying stream."""
        if self._broken or self._closed:
            return
        try:
            self._stream.flush()
        except BrokenPipeError:
            self._broken = True

    def fileno(self) -> int | None:
        """Return the OS file descriptor, or None for in-memory streams."""
        try:
            return self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            return None

    def getvalue(self) -> str:
        """Return everything written to a buffer sink."""
        if isinstance(self._stream, io.StringIO):
            return self._stream.getvalue()
        return ""

    def close(self) -> None:
        """Flush, and close the stream if the sink owns it.  Idempotent."""
        if self._closed:
            return
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.write(tail)
        self.flush()
        if self._owned:
            try:
                self._stream.close()
            except BrokenPipeError:
                self._broken = True
        self._closed = True
