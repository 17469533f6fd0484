"""Tab completion for command names.

The completer separates **what to complete** (pure logic, fully
testable) from **how to show it** (readline integration in the REPL).

``propose(line)`` looks at the text typed so far and returns a
``Proposal``:

- **NO_MATCH** — ring the bell, leave the line alone.
- **COMPLETE** — exactly one candidate; insert it plus a space.
- **EXTEND** — several candidates whose common prefix is longer than
  what was typed; insert the prefix only.
- **LIST** — several candidates and nothing more to insert; ring the
  bell and print them under the prompt.
- **SUPPRESSED** — the cursor is past the first word; only command
  names are completed, so there is nothing to offer.

Candidates are the builtin names plus every executable found in the
``PATH`` directories (unreadable directories are skipped), matched by
case-sensitive prefix, de-duplicated and sorted.
"""

from __future__ import annotations

import os
import readline
import sys
from collections.abc import Callable, Collection
from dataclasses import dataclass
from enum import StrEnum
from typing import TextIO

from ai_shell.resolver import iter_executables

BELL = "\x07"


class ProposalKind(StrEnum):
    """What the completer wants done with the line."""

    NO_MATCH = "no_match"
    COMPLETE = "complete"
    EXTEND = "extend"
    LIST = "list"
    SUPPRESSED = "suppressed"


@dataclass(frozen=True)
class Proposal:
    """The outcome of one completion request.

    Attributes:
        kind: What to do.
        word: The partial word that was completed.
        insertion: Replacement text for *word* (COMPLETE and EXTEND).
        candidates: Every match, sorted.

    """

    kind: ProposalKind
    word: str
    insertion: str = ""
    candidates: tuple[str, ...] = ()


class Completer:
    """Complete the first word of the line against known commands."""

    def __init__(
        self,
        builtins: Collection[str],
        path_dirs: Callable[[], list[str]],
        *,
        prompt: str = "$ ",
        stream: TextIO | None = None,
    ) -> None:
        """Create a completer.

        Args:
            builtins: The builtin command names.
            path_dirs: Returns the current ``PATH`` directories (called
                on every request, so ``PATH`` changes are picked up).
            prompt: The prompt to redraw after listing candidates.
            stream: Where bells and listings are written (default stdout).

        """
        self._builtins = builtins
        self._path_dirs = path_dirs
        self._prompt = prompt
        self._stream = stream
        self._proposal: Proposal | None = None

    def command_names(self) -> set[str]:
        """Return builtin names plus executables on ``PATH``."""
        names = set(self._builtins)
        for directory in self._path_dirs():
            names.update(iter_executables(directory))
        return names

    def propose(self, line: str) -> Proposal:
        """Decide how to complete *line* (the text left of the cursor)."""
        head, _sep, word = line.rpartition(" ")
        if head.strip():
            return Proposal(kind=ProposalKind.SUPPRESSED, word=word)

        hits = tuple(sorted(name for name in self.command_names() if name.startswith(word)))
        if not hits:
            return Proposal(kind=ProposalKind.NO_MATCH, word=word)
        if len(hits) == 1:
            return Proposal(
                kind=ProposalKind.COMPLETE, word=word, insertion=hits[0] + " ", candidates=hits
            )

        prefix = os.path.commonprefix(hits)
        if len(prefix) > len(word):
            return Proposal(kind=ProposalKind.EXTEND, word=word, insertion=prefix, candidates=hits)
        return Proposal(kind=ProposalKind.LIST, word=word, candidates=hits)

    def complete(self, text: str, state: int) -> str | None:
        """Readline callback — return the *state*-th replacement for *text*.

        Args:
            text: The word under the cursor (as split by readline).
            state: 0 for the first request, then 1, 2, … until None.

        Returns:
            The replacement text, or None when there is nothing (more)
            to insert.

        """
        if state == 0:
            line = readline.get_line_buffer()[: readline.get_endidx()]
            self._proposal = self.propose(line)
            self._show(self._proposal, line)

        proposal = self._proposal
        if state == 0 and proposal is not None and proposal.insertion:
            return proposal.insertion
        return None

    def _show(self, proposal: Proposal, line: str) -> None:
        """Ring the bell or list candidates as the proposal requires."""
        stream = self._stream if self._stream is not None else sys.stdout
        if proposal.kind is ProposalKind.NO_MATCH:
            stream.write(BELL)
        elif proposal.kind is ProposalKind.LIST:
            listing = "  ".join(proposal.candidates)
            stream.write(f"{BELL}\n{listing}\n{self._prompt}{line}")
        else:
            return
        stream.flush()
