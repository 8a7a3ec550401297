"""Change detection against published artifact manifests.

Each published project has a manifest at
``{artifactor_url_prefix}/{name}/latest/manifest.json`` recording when its
latest artifact was published. A project needs a build unless that
timestamp is strictly newer than its last commit. Any doubt (manifest
missing, unreadable, or commit time unknown) means it needs a build.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bob_builder.builds.revision import RevisionError, get_last_commit_timestamp
from bob_builder.projects.discovery import find_buildable_dirs
from bob_builder.projects.io import load_project

if TYPE_CHECKING:
    from bob_builder.config import OrchestratorConfig, Settings
    from bob_builder.projects.models import ProjectDescriptor

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Raised when a project's manifest cannot be fetched or parsed."""

    def __init__(self, message: str, code: str = "manifest_unavailable") -> None:
        super().__init__(message)
        self.code = code


class ArtifactManifest(BaseModel):
    """Published artifact manifest."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    timestamp: int = Field(alias="unix_timestamp")


def manifest_url(url_prefix: str, name: str) -> str:
    """Build the manifest URL of a project's latest artifact."""
    return f"{url_prefix.rstrip('/')}/{name}/latest/manifest.json"


def fetch_manifest(
    client: httpx.Client,
    url_prefix: str,
    name: str,
) -> ArtifactManifest:
    """Fetch the latest manifest for a project.

    Args:
        client: HTTPX client instance.
        url_prefix: Artifact store URL prefix.
        name: Project name.

    Returns:
        Parsed ArtifactManifest.

    Raises:
        ManifestError: On network errors, non-200 responses or bad content.
    """
    url = manifest_url(url_prefix, name)
    try:
        response = client.get(url)
    except httpx.HTTPError as e:
        raise ManifestError(f"Failed to fetch {url}: {e}") from e

    if response.status_code != 200:
        raise ManifestError(
            f"Manifest not found at {url} (HTTP {response.status_code})"
        )

    try:
        manifest = ArtifactManifest.model_validate_json(response.content)
    except ValidationError as e:
        raise ManifestError(
            f"Invalid manifest at {url}: {e}", code="manifest_invalid"
        ) from e

    logger.debug("%s manifest timestamp: %d", name, manifest.timestamp)
    return manifest


def needs_build(
    project: ProjectDescriptor,
    config: OrchestratorConfig,
    client: httpx.Client,
    git_bin: str = "git",
) -> bool:
    """Decide whether a project changed since its last published artifact.

    Args:
        project: Loaded project.
        config: Orchestrator config (for the artifact URL prefix).
        client: HTTPX client instance.
        git_bin: git executable.

    Returns:
        False only when the manifest timestamp is strictly newer than the
        last commit; True otherwise.
    """
    try:
        manifest = fetch_manifest(client, config.artifactor_url_prefix, project.name)
    except ManifestError as e:
        logger.info("%s needs a build: %s", project.name, e)
        return True

    try:
        last_commit = get_last_commit_timestamp(project.source_dir, git_bin=git_bin)
    except RevisionError as e:
        logger.info("%s needs a build: %s", project.name, e)
        return True

    if manifest.timestamp > last_commit:
        logger.info("%s is unchanged since its last artifact", project.name)
        return False

    logger.info("%s changed since its last artifact", project.name)
    return True


def find_changed_dirs(
    config: OrchestratorConfig,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> list[Path]:
    """Find project directories that changed since their latest artifact.

    Args:
        config: Orchestrator config; discovery starts at its base_dir.
        settings: Application settings.
        client: HTTPX client (a new one is created and closed if None).

    Returns:
        Project directories needing a build, in discovery order.

    Raises:
        DiscoveryError: If the tree cannot be read.
        ProjectLoadError: If a descriptor is invalid.
        RevisionError: If a project's revisions cannot be resolved.
    """
    if settings is None:
        from bob_builder.config import get_settings

        settings = get_settings()

    buildable = find_buildable_dirs(config.base_dir, settings.descriptor_filename)

    own_client = client is None
    if client is None:
        client = httpx.Client(
            follow_redirects=True, timeout=settings.manifest_timeout
        )

    changed: list[Path] = []
    try:
        for project_dir in buildable:
            project = load_project(project_dir, settings)
            if needs_build(project, config, client, git_bin=settings.git_bin):
                changed.append(project_dir)
    finally:
        if own_client:
            client.close()

    return changed


__all__ = [
    "ArtifactManifest",
    "ManifestError",
    "fetch_manifest",
    "find_changed_dirs",
    "manifest_url",
    "needs_build",
]
