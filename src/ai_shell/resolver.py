"""Command resolution — map a typed name to something runnable.

Resolution order:
    1. **Builtins** — always win, even over an executable of the same
       name on ``PATH``.
    2. **PATH search** — each directory in listed order; the first
       regular file with that exact name and execute permission wins.
    3. **Unresolved**.

A name containing a path separator (``./run.sh``, ``/bin/ls``) skips
the search and resolves to that file if it is executable.

On Windows an unresolved command may still be handed to the system
command shell (``%COMSPEC%``); ``fallback_shell`` locates it.  The
fallback is best effort and simply absent elsewhere.
"""

from __future__ import annotations

import os
from collections.abc import Collection, Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


class ResolutionKind(StrEnum):
    """What a command name turned out to be."""

    BUILTIN = "builtin"
    EXTERNAL = "external"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    """The outcome of resolving one command name."""

    name: str
    kind: ResolutionKind
    path: Path | None = None

    @property
    def found(self) -> bool:
        """Return True unless the name is unresolved."""
        return self.kind is not ResolutionKind.UNRESOLVED


def is_executable(path: Path) -> bool:
    """Return True if *path* is a regular file the user may execute."""
    try:
        return path.is_file() and os.access(path, os.X_OK)
    except OSError:
        return False


def iter_executables(directory: str) -> Iterator[str]:
    """Yield the names of executables in *directory*, skipping unreadable ones."""
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return
    for entry in entries:
        if is_executable(Path(entry.path)):
            yield entry.name


def find_in_path(name: str, path_dirs: list[str]) -> Path | None:
    """Return the first executable called *name* along *path_dirs*."""
    for directory in path_dirs:
        candidate = Path(directory) / name
        if is_executable(candidate):
            return candidate
    return None


def resolve(
    name: str,
    *,
    builtins: Collection[str],
    path_dirs: list[str],
    cwd: Path | None = None,
) -> Resolution:
    """Resolve *name* to a builtin, an executable path, or nothing.

    Args:
        name: The command word.
        builtins: Names of the registered builtins.
        path_dirs: The ``PATH`` directories in search order.
        cwd: Directory that relative paths like ``./tool`` are anchored at.

    Returns:
        The resolution.

    """
    if name in builtins:
        return Resolution(name=name, kind=ResolutionKind.BUILTIN)

    if os.sep in name or (os.altsep and os.altsep in name):
        candidate = Path(name)
        if not candidate.is_absolute() and cwd is not None:
            candidate = cwd / candidate
        if is_executable(candidate):
            return Resolution(name=name, kind=ResolutionKind.EXTERNAL, path=candidate)
        return Resolution(name=name, kind=ResolutionKind.UNRESOLVED)

    path = find_in_path(name, path_dirs)
    if path is not None:
        return Resolution(name=name, kind=ResolutionKind.EXTERNAL, path=path)
    return Resolution(name=name, kind=ResolutionKind.UNRESOLVED)


def fallback_shell(env: dict[str, str]) -> Path | None:
    """Return the Windows command shell, or None on other platforms."""
    if os.name != "nt":
        return None
    comspec = env.get("COMSPEC")
    if comspec and Path(comspec).is_file():
        return Path(comspec)
    return find_in_path("cmd.exe", env.get("PATH", "").split(os.pathsep))
