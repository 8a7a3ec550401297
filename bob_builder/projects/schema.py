"""Pydantic models for the build.yml project descriptor.

A descriptor names the project and lists its build targets::

    name: web/frontend
    builds:
      - kind: docker-public
        latest: true
        dockerfile: Dockerfile
        labels:
          org.example.revision: ${GIT_REF}
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _label_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class BuildTargetSchema(BaseModel):
    """Schema for a single build target.

    ``kind`` is kept as the raw string so that unknown kinds surface as a
    build failure naming the kind rather than a descriptor load failure.

    Attributes:
        kind: Build kind string (docker-public, docker-private, ...).
        latest: Also produce a floating ``latest`` registry tag.
        labels: Image label templates, keyed by label name.
        dockerfile: Dockerfile path relative to the project directory.
        versions: Reserved.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: Annotated[str, Field(description="Build kind", min_length=1)]
    latest: bool = Field(default=False, description="Push a latest tag")
    labels: dict[str, str] = Field(
        default_factory=dict, description="Label templates"
    )
    dockerfile: str = Field(default="Dockerfile", description="Dockerfile path")
    versions: list[str] = Field(default_factory=list, description="Reserved")

    @field_validator("labels", mode="before")
    @classmethod
    def validate_labels(cls, v: object) -> object:
        """Treat an empty ``labels:`` key as no labels.

        Non-string YAML scalars are rendered back in YAML spelling:
        booleans as ``true``/``false``, numbers as Python prints them
        (``2``, ``1.5``). Quote a value in build.yml to keep it verbatim.
        """
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(key): _label_text(value) for key, value in v.items()}
        return v


class ProjectSchema(BaseModel):
    """Schema for a build.yml file.

    Attributes:
        name: Project name, used in tags and scratch paths.
        builds: Ordered build targets.
    """

    model_config = ConfigDict(extra="ignore")

    name: Annotated[str, Field(description="Project name", min_length=1)]
    builds: list[BuildTargetSchema] = Field(
        default_factory=list, description="Build targets"
    )

    @field_validator("builds", mode="before")
    @classmethod
    def validate_builds(cls, v: object) -> object:
        """Treat an empty ``builds:`` key as no builds."""
        return [] if v is None else v


__all__ = ["BuildTargetSchema", "ProjectSchema"]
