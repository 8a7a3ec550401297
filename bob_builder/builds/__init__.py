"""Build orchestration module.

This module handles:
- Running external tools (docker, git, artifactor)
- Revision lookup for project sources
- Isolated, symlink-free build directories
- Tag and label derivation
- Concurrent dispatch of build targets to their executors

Submodules are imported directly, e.g. bob_builder.builds.dispatcher.
"""

from bob_builder.builds.runner import CommandExecutionError, run_command

__all__ = ["CommandExecutionError", "run_command"]
