"""Project descriptor loading.

This module reads build.yml files, validates them against the schema and
resolves the revisions of the project's source directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from bob_builder.builds.revision import get_revision, get_short_revision
from bob_builder.config import DESCRIPTOR_FILENAME
from bob_builder.projects.models import ProjectDescriptor
from bob_builder.projects.schema import ProjectSchema

if TYPE_CHECKING:
    from bob_builder.config import Settings

logger = logging.getLogger(__name__)


class ProjectLoadError(Exception):
    """Raised when a project descriptor is missing or invalid."""

    def __init__(self, message: str, code: str = "descriptor_invalid") -> None:
        super().__init__(message)
        self.code = code


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_project_schema(
    project_dir: Path,
    descriptor_filename: str = DESCRIPTOR_FILENAME,
) -> ProjectSchema:
    """Load and validate the descriptor of a project directory.

    Args:
        project_dir: Directory containing the descriptor.
        descriptor_filename: Descriptor file name.

    Returns:
        Validated ProjectSchema.

    Raises:
        ProjectLoadError: If the descriptor is missing or invalid.
    """
    path = project_dir / descriptor_filename
    try:
        data = load_yaml(path)
    except FileNotFoundError:
        raise ProjectLoadError(
            f"No {descriptor_filename} in {project_dir}",
            code="descriptor_not_found",
        ) from None
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ProjectLoadError(f"Failed to read {path}: {e}") from e

    try:
        return ProjectSchema.model_validate(data)
    except ValidationError as e:
        raise ProjectLoadError(f"Invalid descriptor {path}: {e}") from e


def load_project(
    project_dir: Path,
    settings: Settings | None = None,
) -> ProjectDescriptor:
    """Load a project and resolve its revisions.

    Args:
        project_dir: Project directory.
        settings: Application settings.

    Returns:
        ProjectDescriptor with revision fields populated.

    Raises:
        ProjectLoadError: If the descriptor is missing or invalid.
        RevisionError: If the revisions cannot be resolved.
    """
    if settings is None:
        from bob_builder.config import get_settings

        settings = get_settings()

    source_dir = project_dir.resolve()
    schema = load_project_schema(source_dir, settings.descriptor_filename)

    project = ProjectDescriptor(
        name=schema.name,
        source_dir=source_dir,
        builds=list(schema.builds),
    )
    project.short_revision = get_short_revision(source_dir, git_bin=settings.git_bin)
    project.revision = get_revision(source_dir, git_bin=settings.git_bin)

    logger.debug(
        "Loaded project %s at %s (%s)", project.name, source_dir, project.short_revision
    )
    return project


__all__ = [
    "ProjectLoadError",
    "load_project",
    "load_project_schema",
    "load_yaml",
]
