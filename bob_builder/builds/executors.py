"""Build target executors.

One executor per build kind:

- docker-public / docker-private: build the image, then push its registry
  tags concurrently when the project is pushed.
- docker-local: build the image only.
- bundle: build a builder image, run its /build script with a scratch
  output directory mounted at /output, then publish that directory.
- oci: reserved; always fails.

Every external command runs in the project's isolated build directory.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from bob_builder.builds.fanout import raise_first, run_all
from bob_builder.builds.runner import run_command
from bob_builder.builds.tags import builder_tag, derive_labels, derive_tags
from bob_builder.types import BuildKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from bob_builder.config import OrchestratorConfig, Settings
    from bob_builder.projects.models import ProjectDescriptor
    from bob_builder.projects.schema import BuildTargetSchema

    Executor = Callable[
        [OrchestratorConfig, ProjectDescriptor, BuildTargetSchema, Settings], None
    ]

logger = logging.getLogger(__name__)

# Script looked up in the project's source directory for bundle builds
BUNDLE_SCRIPT = "build"
BUNDLE_OUTPUT_MOUNT = "/output"
DEFAULT_DOCKERFILE = "Dockerfile"


class InvalidBuildKindError(Exception):
    """Raised for a build kind string that names no known kind."""

    def __init__(self, kind: str, code: str = "invalid_build_kind") -> None:
        super().__init__(f"Invalid build kind: {kind!r}")
        self.kind = kind
        self.code = code


class UnsupportedBuildKindError(Exception):
    """Raised for a known build kind that cannot be built yet."""

    def __init__(self, kind: str, code: str = "kind_not_supported") -> None:
        super().__init__(f"Build kind {kind!r} is not supported yet")
        self.kind = kind
        self.code = code


class BundleError(Exception):
    """Raised when a bundle's scratch output directory cannot be prepared."""

    def __init__(self, message: str, code: str = "bundle_output_error") -> None:
        super().__init__(message)
        self.code = code


def _working_dir(project: ProjectDescriptor) -> Path:
    if project.build_dir is None:
        raise ValueError(f"Project {project.name} has no isolated build directory")
    return project.build_dir


def compose_build_args(
    dockerfile: str,
    tags: list[str],
    labels: list[str] | None = None,
) -> list[str]:
    """Compose ``docker build`` arguments.

    Returns:
        ``build -f <dockerfile> -t <tag>... [--label k=v]... .``
    """
    args = ["build", "-f", dockerfile]
    for tag in tags:
        args.extend(["-t", tag])
    for label in labels or []:
        args.extend(["--label", label])
    args.append(".")
    return args


def build_image(
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    tags: list[str],
    settings: Settings,
) -> None:
    """Build an image with the target's Dockerfile, tags and labels."""
    labels = derive_labels(target.labels, project.revision, project.short_revision)
    run_command(
        settings.docker_bin,
        compose_build_args(target.dockerfile, tags, labels),
        cwd=_working_dir(project),
        timeout=settings.command_timeout,
    )


def push_images(
    tags: list[str],
    settings: Settings,
    cwd: Path | None = None,
) -> None:
    """Push tags concurrently, raising the first failure after all finish.

    The docker daemon must already be authenticated against the registries.
    """
    push = [
        (
            tag,
            partial(
                run_command,
                settings.docker_bin,
                ["push", tag],
                cwd=cwd,
                timeout=settings.command_timeout,
            ),
        )
        for tag in tags
    ]
    raise_first(run_all(push, thread_name_prefix="bob-push"))


def _build_tagged_image(
    kind: BuildKind,
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    tags = derive_tags(
        kind, project.name, project.short_revision, config, latest=target.latest
    )
    build_image(project, target, tags.all, settings)

    if not project.push or not tags.registry:
        return

    logger.info("Pushing %s", ", ".join(tags.registry))
    push_images(tags.registry, settings, cwd=_working_dir(project))


def build_public_image(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    """Build an image and optionally push it to the public registry."""
    _build_tagged_image(BuildKind.PUBLIC_IMAGE, config, project, target, settings)


def build_private_image(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    """Build an image and optionally push it to the private registry."""
    _build_tagged_image(BuildKind.PRIVATE_IMAGE, config, project, target, settings)


def build_local_image(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    """Build a local-only image."""
    _build_tagged_image(BuildKind.LOCAL_IMAGE, config, project, target, settings)


def bundle_output_dir(
    project: ProjectDescriptor,
    tmp_root: Path | None = None,
    dockerfile: str = DEFAULT_DOCKERFILE,
) -> Path:
    """Scratch directory receiving a bundle's files.

    Bundles built from a non-default Dockerfile get the Dockerfile path as
    a suffix, so bundle targets of one project with different Dockerfiles
    never share a directory. Targets with the same Dockerfile do.
    """
    if tmp_root is None:
        tmp_root = Path(tempfile.gettempdir())
    name = f"{project.safe_name}--{project.short_revision}"
    if dockerfile != DEFAULT_DOCKERFILE:
        name = f"{name}--{dockerfile.replace('/', '--')}"
    return tmp_root / name


def compose_publish_args(
    output_dir: Path,
    project: ProjectDescriptor,
    config: OrchestratorConfig,
) -> list[str]:
    """Compose artifactor arguments for publishing a bundle."""
    return [
        "-dir",
        str(output_dir),
        "-version",
        project.short_revision,
        "-latest=true",
        "-project",
        project.name,
        "-gcs-prefix",
        config.artifactor_gcs_prefix,
        "-url-prefix",
        config.artifactor_url_prefix,
    ]


def build_bundle(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    """Build a bundle and optionally publish it.

    The project's ``build`` script, when present in the source directory,
    runs inside the builder image and writes its output to /output.

    Raises:
        BundleError: If the scratch output directory cannot be prepared.
        CommandExecutionError: If docker or artifactor fails.
    """
    output_dir = bundle_output_dir(project, settings.tmp_dir, target.dockerfile)
    try:
        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(mode=0o755)
    except OSError as e:
        raise BundleError(f"Failed to prepare {output_dir}: {e}") from e

    cwd = _working_dir(project)
    tag = builder_tag(project.name, project.short_revision)
    run_command(
        settings.docker_bin,
        compose_build_args(target.dockerfile, [tag]),
        cwd=cwd,
        timeout=settings.command_timeout,
    )

    if (project.source_dir / BUNDLE_SCRIPT).exists():
        run_command(
            settings.docker_bin,
            [
                "run",
                "-v",
                f"{output_dir}:{BUNDLE_OUTPUT_MOUNT}",
                "-t",
                tag,
                f"/{BUNDLE_SCRIPT}",
            ],
            cwd=cwd,
            timeout=settings.command_timeout,
        )
    else:
        logger.info("No %s script in %s", BUNDLE_SCRIPT, project.source_dir)

    if not project.push:
        return

    run_command(
        settings.artifactor_bin,
        compose_publish_args(output_dir, project, config),
        cwd=cwd,
        timeout=settings.command_timeout,
    )


EXECUTORS: dict[BuildKind, Executor] = {
    BuildKind.PUBLIC_IMAGE: build_public_image,
    BuildKind.PRIVATE_IMAGE: build_private_image,
    BuildKind.LOCAL_IMAGE: build_local_image,
    BuildKind.BUNDLE: build_bundle,
}

UNSUPPORTED_KINDS = frozenset({BuildKind.OCI})


def resolve_kind(kind: str) -> BuildKind:
    """Map a build.yml kind string to a BuildKind.

    Raises:
        InvalidBuildKindError: If the string names no kind.
    """
    try:
        return BuildKind(kind)
    except ValueError:
        raise InvalidBuildKindError(kind) from None


def execute_target(
    config: OrchestratorConfig,
    project: ProjectDescriptor,
    target: BuildTargetSchema,
    settings: Settings,
) -> None:
    """Run the executor matching a target's kind.

    Raises:
        InvalidBuildKindError: For unknown kinds.
        UnsupportedBuildKindError: For reserved kinds.
    """
    kind = resolve_kind(target.kind)
    if kind in UNSUPPORTED_KINDS:
        raise UnsupportedBuildKindError(kind.value)

    logger.info("Building %s (%s)", project.name, kind.value)
    EXECUTORS[kind](config, project, target, settings)


__all__ = [
    "BUNDLE_SCRIPT",
    "DEFAULT_DOCKERFILE",
    "EXECUTORS",
    "UNSUPPORTED_KINDS",
    "BundleError",
    "InvalidBuildKindError",
    "UnsupportedBuildKindError",
    "build_bundle",
    "build_image",
    "build_local_image",
    "build_private_image",
    "build_public_image",
    "bundle_output_dir",
    "compose_build_args",
    "compose_publish_args",
    "execute_target",
    "push_images",
    "resolve_kind",
]
