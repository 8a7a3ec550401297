"""Project module.

This module handles:
- The build.yml descriptor schema and loading
- Discovery of buildable project directories
- Change detection against published artifact manifests
"""

from bob_builder.projects.models import ProjectDescriptor
from bob_builder.projects.schema import BuildTargetSchema, ProjectSchema

__all__ = ["BuildTargetSchema", "ProjectDescriptor", "ProjectSchema"]
