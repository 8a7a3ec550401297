"""Revision lookup for project source directories.

All queries run against the project's source directory with ``git -C``,
never against an isolated build directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bob_builder.builds.runner import CommandExecutionError, run_command

logger = logging.getLogger(__name__)

DEFAULT_GIT_BIN = "git"


class RevisionError(Exception):
    """Raised when a revision cannot be resolved for a directory."""

    def __init__(self, message: str, code: str = "revision_error") -> None:
        super().__init__(message)
        self.code = code


def run_git(
    source_dir: Path,
    *args: str,
    git_bin: str = DEFAULT_GIT_BIN,
) -> str:
    """Run a git command in a source directory and return trimmed output.

    Args:
        source_dir: Directory passed to ``git -C``.
        *args: git subcommand and its arguments.
        git_bin: git executable.

    Returns:
        stdout with surrounding newlines removed.

    Raises:
        RevisionError: If git fails.
    """
    try:
        output = run_command(git_bin, ["-C", str(source_dir), *args], stream=False)
    except CommandExecutionError as e:
        raise RevisionError(f"git {' '.join(args)} failed in {source_dir}: {e}") from e
    return output.decode("utf-8").strip("\n")


def get_revision(source_dir: Path, git_bin: str = DEFAULT_GIT_BIN) -> str:
    """Return the full revision of HEAD."""
    return run_git(source_dir, "rev-parse", "HEAD", git_bin=git_bin)


def get_short_revision(source_dir: Path, git_bin: str = DEFAULT_GIT_BIN) -> str:
    """Return the abbreviated revision of HEAD."""
    return run_git(source_dir, "rev-parse", "--short", "HEAD", git_bin=git_bin)


def get_last_commit_timestamp(
    source_dir: Path,
    git_bin: str = DEFAULT_GIT_BIN,
) -> int:
    """Return the commit time of HEAD in Unix seconds.

    ``rev-list --timestamp`` prints ``<unix_seconds> <sha>`` for the commit.

    Raises:
        RevisionError: If git fails or prints something unexpected.
    """
    output = run_git(
        source_dir, "rev-list", "-1", "--timestamp", "HEAD", git_bin=git_bin
    )
    timestamp, _, _ = output.partition(" ")
    try:
        return int(timestamp)
    except ValueError:
        raise RevisionError(
            f"Unexpected rev-list output in {source_dir}: {output!r}"
        ) from None


__all__ = [
    "DEFAULT_GIT_BIN",
    "RevisionError",
    "get_last_commit_timestamp",
    "get_revision",
    "get_short_revision",
    "run_git",
]
