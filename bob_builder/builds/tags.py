"""Image tag and label derivation.

Tags per build kind:

=============  ==========================================  ===============================
Kind           Local tags (never pushed)                   Registry tags
=============  ==========================================  ===============================
docker-public  public/{name}:{rev}, public/{name}:latest   {public}/{name}:{rev} [+latest]
docker-private private/{name}:{rev}, private/{name}:latest {private}/{name}:{rev} [+latest]
docker-local   local/{name}:latest                         (none)
=============  ==========================================  ===============================

Label values may contain the placeholders ${SECOND_TIMESTAMP},
${TIMESTAMP}, ${GIT_REF} and ${GIT_SHORT_REF}.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bob_builder.types import BuildKind

if TYPE_CHECKING:
    from bob_builder.config import OrchestratorConfig

LATEST = "latest"


@dataclass(frozen=True)
class ImageTags:
    """Tags for one image build.

    Attributes:
        local: Tags only applied to the local image.
        registry: Fully-qualified tags, pushed when publishing.
    """

    local: list[str] = field(default_factory=list)
    registry: list[str] = field(default_factory=list)

    @property
    def all(self) -> list[str]:
        """Every tag applied at build time."""
        return [*self.local, *self.registry]


def derive_tags(
    kind: BuildKind,
    name: str,
    short_revision: str,
    config: OrchestratorConfig,
    latest: bool = False,
) -> ImageTags:
    """Derive the tags for an image build.

    Args:
        kind: One of the image kinds.
        name: Project name.
        short_revision: Abbreviated source revision.
        config: Orchestrator config with the registry locations.
        latest: Add a floating latest registry tag.

    Returns:
        ImageTags for the build.

    Raises:
        ValueError: If ``kind`` is not an image kind.
    """
    if kind is BuildKind.LOCAL_IMAGE:
        return ImageTags(local=[f"local/{name}:{LATEST}"])

    if kind is BuildKind.PUBLIC_IMAGE:
        scope, registry = "public", config.public_registry
    elif kind is BuildKind.PRIVATE_IMAGE:
        scope, registry = "private", config.private_registry
    else:
        raise ValueError(f"{kind.value} builds have no image tags")

    local = [f"{scope}/{name}:{short_revision}", f"{scope}/{name}:{LATEST}"]
    remote = [f"{registry}/{name}:{short_revision}"]
    if latest:
        remote.append(f"{registry}/{name}:{LATEST}")

    return ImageTags(local=local, registry=remote)


def builder_tag(name: str, short_revision: str) -> str:
    """Tag of the image used to produce a bundle."""
    return f"builder/{name}:{short_revision}"


def label_substitutions(
    revision: str,
    short_revision: str,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Placeholder values for one label computation."""
    if timestamp is None:
        timestamp = int(time.time())
    return {
        "${SECOND_TIMESTAMP}": str(timestamp),
        "${TIMESTAMP}": str(timestamp),
        "${GIT_REF}": revision,
        "${GIT_SHORT_REF}": short_revision,
    }


def derive_labels(
    labels: Mapping[str, str],
    revision: str,
    short_revision: str,
    timestamp: int | None = None,
) -> list[str]:
    """Render declared labels as ``key=value`` strings.

    Placeholders are substituted in values only. The timestamp is taken
    once, so every label of a build carries the same time.

    Args:
        labels: Declared label templates.
        revision: Full source revision.
        short_revision: Abbreviated source revision.
        timestamp: Unix seconds (now if None).

    Returns:
        One ``key=value`` string per declared label.
    """
    substitutions = label_substitutions(revision, short_revision, timestamp)

    rendered: list[str] = []
    for key, value in labels.items():
        for placeholder, replacement in substitutions.items():
            value = value.replace(placeholder, replacement)
        rendered.append(f"{key}={value}")
    return rendered


__all__ = [
    "LATEST",
    "ImageTags",
    "builder_tag",
    "derive_labels",
    "derive_tags",
    "label_substitutions",
]
