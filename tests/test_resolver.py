"""Tests for command resolution.

A name resolves to a builtin first, then to the first executable of
that exact name along PATH, and otherwise to nothing.
"""

import os
import stat
from pathlib import Path

import pytest

from ai_shell.resolver import (
    ResolutionKind,
    fallback_shell,
    find_in_path,
    iter_executables,
    resolve,
)

_BUILTINS = frozenset(["echo", "cd", "type"])


def _make_executable(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def _bin(tmp_path: Path, name: str = "bin") -> Path:
    directory = tmp_path / name
    directory.mkdir()
    return directory


class TestResolve:
    """Verify resolution order."""

    def test_builtin(self) -> None:
        """A registered name is a builtin."""
        result = resolve("echo", builtins=_BUILTINS, path_dirs=[])
        assert result.kind is ResolutionKind.BUILTIN
        assert result.path is None
        assert result.found

    def test_builtin_shadows_path(self, tmp_path: Path) -> None:
        """A builtin wins over an executable with the same name."""
        bin_dir = _bin(tmp_path)
        _make_executable(bin_dir, "echo")
        result = resolve("echo", builtins=_BUILTINS, path_dirs=[str(bin_dir)])
        assert result.kind is ResolutionKind.BUILTIN

    def test_external(self, tmp_path: Path) -> None:
        """An executable on PATH resolves to its path."""
        bin_dir = _bin(tmp_path)
        tool = _make_executable(bin_dir, "tool")
        result = resolve("tool", builtins=_BUILTINS, path_dirs=[str(bin_dir)])
        assert result.kind is ResolutionKind.EXTERNAL
        assert result.path == tool

    def test_first_directory_wins(self, tmp_path: Path) -> None:
        """PATH is searched in listed order."""
        first, second = _bin(tmp_path, "first"), _bin(tmp_path, "second")
        _make_executable(second, "tool")
        expected = _make_executable(first, "tool")
        assert find_in_path("tool", [str(first), str(second)]) == expected

    def test_non_executable_is_skipped(self, tmp_path: Path) -> None:
        """A plain file without execute permission does not count."""
        first, second = _bin(tmp_path, "first"), _bin(tmp_path, "second")
        (first / "tool").write_text("not executable")
        expected = _make_executable(second, "tool")
        assert find_in_path("tool", [str(first), str(second)]) == expected

    def test_directory_is_skipped(self, tmp_path: Path) -> None:
        """A directory with the command's name is not a command."""
        bin_dir = _bin(tmp_path)
        (bin_dir / "tool").mkdir()
        result = resolve("tool", builtins=_BUILTINS, path_dirs=[str(bin_dir)])
        assert result.kind is ResolutionKind.UNRESOLVED

    def test_unresolved(self) -> None:
        """An unknown name resolves to nothing."""
        result = resolve("zzz-not-a-real-cmd", builtins=_BUILTINS, path_dirs=[])
        assert result.kind is ResolutionKind.UNRESOLVED
        assert not result.found

    def test_relative_path_name(self, tmp_path: Path) -> None:
        """``./tool`` resolves against the working directory, not PATH."""
        tool = _make_executable(tmp_path, "tool")
        result = resolve("./tool", builtins=_BUILTINS, path_dirs=[], cwd=tmp_path)
        assert result.kind is ResolutionKind.EXTERNAL
        assert result.path == tmp_path / "./tool"
        assert result.path.resolve() == tool.resolve()

    def test_missing_path_name(self, tmp_path: Path) -> None:
        """A path to nothing is unresolved."""
        result = resolve("./nope", builtins=_BUILTINS, path_dirs=[], cwd=tmp_path)
        assert result.kind is ResolutionKind.UNRESOLVED


class TestListing:
    """Verify listing executables for completion."""

    def test_lists_only_executables(self, tmp_path: Path) -> None:
        """Non-executable files are not listed."""
        bin_dir = _bin(tmp_path)
        _make_executable(bin_dir, "alpha")
        (bin_dir / "readme").write_text("x")
        assert sorted(iter_executables(str(bin_dir))) == ["alpha"]

    def test_missing_directory_is_skipped(self, tmp_path: Path) -> None:
        """An unreadable or missing directory yields nothing."""
        assert list(iter_executables(str(tmp_path / "missing"))) == []


class TestFallbackShell:
    """Verify the platform shell fallback."""

    @pytest.mark.skipif(os.name == "nt", reason="fallback exists on Windows")
    def test_absent_off_windows(self) -> None:
        """Only Windows routes unknown commands through a system shell."""
        assert fallback_shell({"PATH": os.environ.get("PATH", "")}) is None
