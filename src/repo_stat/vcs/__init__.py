"""
Version control integrations.

This package contains the command runner used to start external
processes, the :class:`GitClient` wrapper and helpers for reading
``repo`` manifests and matching projects between two checkouts.
"""

from .command import CommandError  # noqa: F401
from .git_client import GitClient, GitError  # noqa: F401
from .manifest import ManifestError  # noqa: F401
