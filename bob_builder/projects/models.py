"""Runtime project model."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bob_builder.projects.schema import BuildTargetSchema


@dataclass
class ProjectDescriptor:
    """A loaded project, ready to be built.

    Attributes:
        name: Project name from build.yml.
        source_dir: Absolute project directory.
        builds: Build targets in descriptor order.
        push: Publish build results.
        revision: Full revision of the source directory.
        short_revision: Abbreviated revision of the source directory.
        build_dir: Isolated copy of source_dir, set once isolation has run.
    """

    name: str
    source_dir: Path
    builds: list[BuildTargetSchema] = field(default_factory=list)
    push: bool = False
    revision: str = ""
    short_revision: str = ""
    build_dir: Path | None = None

    @property
    def safe_name(self) -> str:
        """Project name usable as a single path component."""
        return self.name.replace("/", "--")


__all__ = ["ProjectDescriptor"]
