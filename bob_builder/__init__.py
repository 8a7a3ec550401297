"""bob-builder - Multi-project build orchestrator.

This package discovers buildable projects in a repository tree and builds
their container images and artifact bundles, optionally publishing them.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
