"""Redirection extractor — route command output to files.

Redirection operators are removed from the argument list and turned
into ``Redirection`` records that the executor applies when it builds
the command's sinks:

    ``> file``  / ``1> file``   — stdout, truncate
    ``>> file`` / ``1>> file``  — stdout, append
    ``2> file``                 — stderr, truncate
    ``2>> file``                — stderr, append
    ``2>&1``                    — stderr follows stdout

Operators are matched in a fixed precedence order (``2>&1`` before
``2>>`` before ``2>``, and so on) so a longer operator is never read as
a shorter one followed by junk.  The path may be a separate word or
glued on (``>out.txt``).  Quoted words are plain arguments.

Each stream keeps at most one redirection: a later operator for the same
stream replaces the earlier one.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum


class RedirectionError(ValueError):
    """Raise when a redirection operator is missing its file operand."""


class Stream(StrEnum):
    """Which output stream a redirection applies to."""

    STDOUT = "stdout"
    STDERR = "stderr"


class RedirectMode(StrEnum):
    """How the target is opened.

    - TRUNCATE — ``>``: create or empty the file.
    - APPEND — ``>>``: create or write at the end.
    - MERGE — ``2>&1``: no file; share whatever stdout resolves to.
    """

    TRUNCATE = "w"
    APPEND = "a"
    MERGE = "merge"


@dataclass(frozen=True)
class Redirection:
    """A single parsed redirection."""

    stream: Stream
    mode: RedirectMode
    target: str | None = None


@dataclass
class Redirections:
    """The active stdout and stderr redirections of one command."""

    stdout: Redirection | None = None
    stderr: Redirection | None = None

    def __bool__(self) -> bool:
        """Return True if any stream is redirected."""
        return self.stdout is not None or self.stderr is not None


# (operator, stream, mode) in match order.
_OPERATORS: tuple[tuple[str, Stream, RedirectMode], ...] = (
    ("2>&1", Stream.STDERR, RedirectMode.MERGE),
    ("2>>", Stream.STDERR, RedirectMode.APPEND),
    ("2>", Stream.STDERR, RedirectMode.TRUNCATE),
    ("1>>", Stream.STDOUT, RedirectMode.APPEND),
    (">>", Stream.STDOUT, RedirectMode.APPEND),
    ("1>", Stream.STDOUT, RedirectMode.TRUNCATE),
    (">", Stream.STDOUT, RedirectMode.TRUNCATE),
)


def _match_operator(token: str) -> tuple[str, Stream, RedirectMode] | None:
    """Return the operator that *token* starts with, if any."""
    if getattr(token, "quoted", False):
        return None
    for operator in _OPERATORS:
        if token.startswith(operator[0]):
            return operator
    return None


def extract(tokens: Sequence[str]) -> tuple[list[str], Redirections]:
    """Strip redirection operators from *tokens*.

    Args:
        tokens: Words of one command, as produced by the tokenizer.

    Returns:
        The remaining arguments and the parsed redirections.

    Raises:
        RedirectionError: If an operator has no file operand.

    """
    cleaned: list[str] = []
    redirects = Redirections()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        matched = _match_operator(token)
        if matched is None:
            cleaned.append(token)
            i += 1
            continue

        text, stream, mode = matched
        target: str | None = None
        if mode is RedirectMode.MERGE:
            if len(token) > len(text):
                # "2>&1x" is not an operator we know; keep it as an argument.
                cleaned.append(token)
                i += 1
                continue
        elif len(token) > len(text):
            target = token[len(text) :]
        elif i + 1 < len(tokens):
            target = tokens[i + 1]
            i += 1
        else:
            msg = f"syntax error: missing file operand after '{text}'"
            raise RedirectionError(msg)

        found = Redirection(stream=stream, mode=mode, target=target)
        if stream is Stream.STDOUT:
            redirects.stdout = found
        else:
            redirects.stderr = found
        i += 1

    return cleaned, redirects
