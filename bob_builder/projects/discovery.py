"""Discovery of buildable project directories.

A directory is buildable when it directly contains a descriptor file.
Discovery never descends into a buildable directory, so nested projects
are not reported twice.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bob_builder.config import DESCRIPTOR_FILENAME, ConfigError, find_parent_file

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the directory tree cannot be read."""

    def __init__(self, message: str, code: str = "discovery_error") -> None:
        super().__init__(message)
        self.code = code


def find_buildable_dirs(
    base_dir: Path,
    descriptor_filename: str = DESCRIPTOR_FILENAME,
) -> list[Path]:
    """Find every project directory below ``base_dir``.

    Only children of ``base_dir`` (and their descendants) are candidates;
    ``base_dir`` itself is never reported.

    Args:
        base_dir: Directory to search from.
        descriptor_filename: File name marking a project directory.

    Returns:
        Sorted absolute paths of project directories.

    Raises:
        DiscoveryError: If any directory cannot be read. No partial
            result is returned.
    """
    found: list[Path] = []
    pending = [base_dir.absolute()]

    while pending:
        directory = pending.pop()
        try:
            entries = list(os.scandir(directory))
        except OSError as e:
            raise DiscoveryError(f"Failed to read directory {directory}: {e}") from e

        for entry in entries:
            # Symlinked directories are not followed
            if not entry.is_dir(follow_symlinks=False):
                continue
            child = Path(entry.path)
            try:
                (child / descriptor_filename).stat()
            except (FileNotFoundError, NotADirectoryError):
                pending.append(child)
                continue
            except OSError as e:
                raise DiscoveryError(f"Failed to read directory {child}: {e}") from e
            found.append(child)

    logger.debug("Found %d project(s) under %s", len(found), base_dir)
    return sorted(found)


def find_project_dir(
    start_dir: Path | None = None,
    descriptor_filename: str = DESCRIPTOR_FILENAME,
) -> Path:
    """Return the nearest directory at or above ``start_dir`` with a descriptor.

    Raises:
        DiscoveryError: If no such directory exists.
    """
    try:
        descriptor = find_parent_file([descriptor_filename], start_dir)
    except ConfigError as e:
        raise DiscoveryError(str(e), code="project_not_found") from e
    return descriptor.parent


__all__ = [
    "DiscoveryError",
    "find_buildable_dirs",
    "find_project_dir",
]
