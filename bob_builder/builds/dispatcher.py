"""Build dispatcher.

This module provides the per-project build entry point:
- build_project_dir(): load, isolate and build one project directory
- dispatch_targets(): run a project's selected targets concurrently

A project build moves through Loaded -> DirectoryIsolated -> Dispatching
-> Running -> Aggregated -> Done. Targets run on their own threads with the
isolated build directory passed explicitly, so the process working
directory is never changed.
"""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from bob_builder.builds.executors import execute_target
from bob_builder.builds.fanout import raise_first, run_all
from bob_builder.builds.isolation import create_build_dir, remove_build_dir
from bob_builder.config import get_settings
from bob_builder.projects.io import load_project
from bob_builder.types import ALL_KINDS

if TYPE_CHECKING:
    from bob_builder.config import OrchestratorConfig, Settings
    from bob_builder.projects.models import ProjectDescriptor
    from bob_builder.projects.schema import BuildTargetSchema

logger = logging.getLogger(__name__)


def select_targets(
    project: ProjectDescriptor,
    kind: str = ALL_KINDS,
) -> list[BuildTargetSchema]:
    """Return the targets matching a kind filter, in descriptor order.

    Args:
        project: Loaded project.
        kind: ``all`` or an exact build kind string.

    Returns:
        Matching targets. Others are skipped with a log line.
    """
    selected: list[BuildTargetSchema] = []
    for target in project.builds:
        if kind != ALL_KINDS and kind != target.kind:
            logger.info("Skipping build %s of %s", target.kind, project.name)
            continue
        selected.append(target)
    return selected


def dispatch_targets(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    kind: str = ALL_KINDS,
    settings: Settings | None = None,
) -> list[str]:
    """Run the selected targets of an isolated project concurrently.

    Every target runs to completion even when a sibling fails.

    Args:
        config: Orchestrator config.
        project: Project with build_dir set.
        kind: ``all`` or an exact build kind string.
        settings: Application settings.

    Returns:
        Kinds of the targets that were built.

    Raises:
        Exception: The first failure observed, if any target failed. Other
            failures are logged.
    """
    if settings is None:
        settings = get_settings()

    targets = select_targets(project, kind)
    tasks = [
        (
            f"{project.name} {target.kind}",
            partial(execute_target, config, project, target, settings),
        )
        for target in targets
    ]

    raise_first(run_all(tasks, thread_name_prefix="bob-build"))

    return [target.kind for target in targets]


def build_project_dir(
    project_dir: Path,
    config: OrchestratorConfig,
    kind: str = ALL_KINDS,
    push: bool = False,
    settings: Settings | None = None,
) -> list[str]:
    """Load, isolate and build a project directory.

    Args:
        project_dir: Directory containing build.yml.
        config: Orchestrator config.
        kind: ``all`` or an exact build kind string.
        push: Publish build results.
        settings: Application settings.

    Returns:
        Kinds of the targets that were built.

    Raises:
        ProjectLoadError: If the descriptor is missing or invalid.
        RevisionError: If revisions cannot be resolved.
        IsolationError: If the build directory cannot be created.
        Exception: The first target failure, see dispatch_targets().
    """
    if settings is None:
        settings = get_settings()

    project = load_project(project_dir, settings)
    project.push = push

    project.build_dir = create_build_dir(project, settings.tmp_dir)
    try:
        built = dispatch_targets(config, project, kind, settings)
    finally:
        if not settings.keep_build_dir:
            remove_build_dir(project.build_dir)

    logger.info("Built %s: %s", project.name, ", ".join(built) or "nothing")
    return built


__all__ = [
    "build_project_dir",
    "dispatch_targets",
    "select_targets",
]
