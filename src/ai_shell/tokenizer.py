"""Tokenizer — split a raw input line into argument words.

The tokenizer is a small character-level state machine with three
states: *unquoted*, *single-quoted* and *double-quoted*.

Quoting rules:
    - **Unquoted** — a plain space ends the current word (runs of spaces
      collapse); a backslash escapes the next character, including a
      space.
    - **Single quotes** — everything is literal until the closing quote,
      backslashes included.
    - **Double quotes** — a backslash escapes only ``"``, ``\\``, ``$``
      and newline.  Before any other character the backslash is kept.

Pieces of a word concatenate: ``a"b c"d`` is the single word ``ab cd``.

An unterminated quote never raises.  The quoted text simply runs to the
end of the input and becomes part of the current word, so ``echo 'abc``
yields ``["echo", "abc"]``.
"""

from enum import StrEnum

# Characters a backslash may escape inside double quotes.
_DQUOTE_ESCAPABLE = frozenset('"\\$\n')


class Word(str):
    """A token that remembers whether any part of it was quoted or escaped.

    Quoted words are never mistaken for operators: ``echo ">"`` prints a
    literal ``>`` instead of redirecting.  ``Word`` compares equal to the
    plain string it wraps.
    """

    quoted: bool

    def __new__(cls, text: str, *, quoted: bool = False) -> "Word":
        """Create a word from *text*."""
        word = super().__new__(cls, text)
        word.quoted = quoted
        return word


class _State(StrEnum):
    UNQUOTED = "unquoted"
    SINGLE = "single"
    DOUBLE = "double"


def tokenize(line: str) -> list[Word]:
    """Split *line* into words, resolving quotes and escapes.

    Args:
        line: The raw text typed by the user.

    Returns:
        The words in order.  The first word is the command name.

    """
    words: list[Word] = []
    current: list[str] = []
    quoted = False
    # A word exists once any quote has been opened, even if it is empty ('').
    started = False
    state = _State.UNQUOTED
    i = 0

    while i < len(line):
        char = line[i]

        if state is _State.SINGLE:
            if char == "'":
                state = _State.UNQUOTED
            else:
                current.append(char)
            i += 1
            continue

        if state is _State.DOUBLE:
            if char == '"':
                state = _State.UNQUOTED
            elif char == "\\" and i + 1 < len(line) and line[i + 1] in _DQUOTE_ESCAPABLE:
                current.append(line[i + 1])
                i += 1
            else:
                current.append(char)
            i += 1
            continue

        if char == " ":
            if started:
                words.append(Word("".join(current), quoted=quoted))
                current, quoted, started = [], False, False
        elif char == "'":
            state, quoted, started = _State.SINGLE, True, True
        elif char == '"':
            state, quoted, started = _State.DOUBLE, True, True
        elif char == "\\":
            if i + 1 < len(line):
                current.append(line[i + 1])
                quoted = True
                i += 1
            else:
                current.append(char)
            started = True
        else:
            current.append(char)
            started = True
        i += 1

    if started:
        words.append(Word("".join(current), quoted=quoted))
    return words


def split_pipeline(line: str) -> list[str]:
    """Split *line* on pipe operators that are not quoted or escaped.

    Args:
        line: The raw input line.

    Returns:
        The stripped text of each segment.  A line without a pipe
        yields a single segment.

    """
    segments: list[str] = []
    start = 0
    state = _State.UNQUOTED
    i = 0
    while i < len(line):
        char = line[i]
        if state is _State.SINGLE:
            if char == "'":
                state = _State.UNQUOTED
        elif state is _State.DOUBLE:
            if char == "\\":
                i += 1
            elif char == '"':
                state = _State.UNQUOTED
        elif char == "\\":
            i += 1
        elif char == "'":
            state = _State.SINGLE
        elif char == '"':
            state = _State.DOUBLE
        elif char == "|":
            segments.append(line[start:i].strip())
            start = i + 1
        i += 1
    segments.append(line[start:].strip())
    return segments
