"""
Configuration loading for repo_stat.

Provides a loader for the optional user-level JSON configuration. See
:mod:`repo_stat.config.loader` for implementation details.
"""

from .loader import ConfigError, load_config  # noqa: F401
