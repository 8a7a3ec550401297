"""Isolated build directories.

Container tools reject build contexts containing symlinks that point
outside the context. Before building, a project's source tree is copied
into a scratch directory with every symlink replaced by a copy of its
target, so the build context holds only regular files and directories.
"""

from __future__ import annotations

import logging
import shutil
import stat
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bob_builder.projects.models import ProjectDescriptor

logger = logging.getLogger(__name__)

BUILD_DIR_PREFIX = "bob"
DEFAULT_DIR_MODE = 0o755


class IsolationError(Exception):
    """Raised when a build directory cannot be created or populated."""

    def __init__(self, message: str, code: str = "isolation_error") -> None:
        super().__init__(message)
        self.code = code


def _copy_dir(src: Path, dst: Path, ancestors: frozenset[Path]) -> None:
    try:
        entries = sorted(src.iterdir())
    except OSError as e:
        raise IsolationError(f"Failed to read directory {src}: {e}") from e

    for entry in entries:
        dst_path = dst / entry.name

        try:
            target = entry.resolve(strict=True)
            target_stat = target.stat()
        except (OSError, RuntimeError) as e:
            raise IsolationError(f"Failed to resolve {entry}: {e}") from e

        mode = stat.S_IMODE(target_stat.st_mode)

        if stat.S_ISDIR(target_stat.st_mode):
            if target in ancestors:
                raise IsolationError(
                    f"Symlink cycle at {entry} -> {target}", code="symlink_cycle"
                )
            try:
                dst_path.mkdir(mode=DEFAULT_DIR_MODE)
            except OSError as e:
                raise IsolationError(f"Failed to create {dst_path}: {e}") from e

            _copy_dir(target, dst_path, ancestors | {target})

            # Applied after the children so read-only directories can be filled
            try:
                dst_path.chmod(mode)
            except OSError as e:
                raise IsolationError(f"Failed to set mode on {dst_path}: {e}") from e
            continue

        try:
            shutil.copyfile(target, dst_path)
            dst_path.chmod(mode)
        except OSError as e:
            raise IsolationError(f"Failed to copy {entry} -> {dst_path}: {e}") from e


def copy_tree_resolving_symlinks(src: Path, dst: Path) -> None:
    """Copy a directory tree, replacing every symlink with its target.

    Directory and file mode bits are preserved. ``dst`` must already exist.

    Args:
        src: Source directory.
        dst: Existing, empty destination directory.

    Raises:
        IsolationError: On any unreadable entry, broken symlink, symlink
            cycle or write failure. The destination is then incomplete and
            must not be used.
    """
    try:
        root = src.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise IsolationError(f"Failed to resolve {src}: {e}") from e
    _copy_dir(root, dst, frozenset({root}))


def build_dir_name(project: ProjectDescriptor, timestamp: float) -> str:
    """Name of a project's scratch build directory.

    Names are unique per project, revision and second, and readable when
    inspecting leftover directories.
    """
    return (
        f"{BUILD_DIR_PREFIX}--{project.safe_name}--{project.short_revision}"
        f"--{int(timestamp)}"
    )


def create_build_dir(
    project: ProjectDescriptor,
    tmp_root: Path | None = None,
    timestamp: float | None = None,
) -> Path:
    """Create a symlink-free copy of a project's source directory.

    Args:
        project: Project with revisions resolved.
        tmp_root: Parent of the build directory (system temp dir if None).
        timestamp: Creation time in Unix seconds (now if None).

    Returns:
        Path of the new build directory.

    Raises:
        IsolationError: If the directory exists already or the copy fails.
            A partially copied directory is removed.
    """
    if tmp_root is None:
        tmp_root = Path(tempfile.gettempdir())
    if timestamp is None:
        timestamp = time.time()

    build_dir = tmp_root / build_dir_name(project, timestamp)

    try:
        build_dir.mkdir(mode=DEFAULT_DIR_MODE)
    except FileExistsError:
        raise IsolationError(
            f"Build directory already exists: {build_dir}", code="build_dir_exists"
        ) from None
    except OSError as e:
        raise IsolationError(f"Failed to create {build_dir}: {e}") from e

    try:
        copy_tree_resolving_symlinks(project.source_dir, build_dir)
    except IsolationError:
        shutil.rmtree(build_dir, ignore_errors=True)
        raise

    logger.info("Isolated %s into %s", project.source_dir, build_dir)
    return build_dir


def remove_build_dir(build_dir: Path) -> None:
    """Remove a build directory, ignoring errors."""
    logger.debug("Removing build directory %s", build_dir)
    shutil.rmtree(build_dir, ignore_errors=True)


__all__ = [
    "BUILD_DIR_PREFIX",
    "IsolationError",
    "build_dir_name",
    "copy_tree_resolving_symlinks",
    "create_build_dir",
    "remove_build_dir",
]
