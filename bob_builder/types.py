"""Shared type definitions for bob_builder.

This module contains enums and type aliases shared across subpackages
to avoid circular imports.
"""

from enum import Enum


class BuildKind(str, Enum):
    """Kind of a build target, as written in build.yml."""

    PUBLIC_IMAGE = "docker-public"
    PRIVATE_IMAGE = "docker-private"
    LOCAL_IMAGE = "docker-local"
    BUNDLE = "bundle"
    OCI = "oci"


# Kind filter value that selects every build target of a project
ALL_KINDS = "all"


__all__ = ["ALL_KINDS", "BuildKind"]
