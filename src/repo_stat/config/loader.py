"""
Configuration loader for repo_stat.

Defaults for the command line options can be stored in a JSON file
named ``config.json`` in the ``~/.repo_stat/`` directory. The file is
optional; when it is absent the built-in defaults are used. If it
exists but is malformed or holds values of the wrong type, a
:class:`ConfigError` is raised.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from repo_stat.report.reporter import REPORT_FORMATS
from repo_stat.stats.aggregator import DEFAULT_MODES, default_thread_count
from repo_stat.vcs.git_client import DEFAULT_NUMSTAT_SEPARATOR
from repo_stat.vcs.manifest import DEFAULT_MANIFEST_FILE


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings or logging errors in
# environments where the root logger may be closed.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


CONFIG_FILENAME = "config.json"


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""

    pass


def _get_config_directory() -> Path:
    """Return the directory holding the user-level configuration."""
    return Path.home() / ".repo_stat"


def default_config() -> Dict[str, Any]:
    return {
        "manifest_file": DEFAULT_MANIFEST_FILE,
        "num_threads": default_thread_count(),
        "mode": DEFAULT_MODES,
        "separator": DEFAULT_NUMSTAT_SEPARATOR,
        "report_format": "csv",
    }


def _validate(data: Dict[str, Any]) -> None:
    for key in ("manifest_file", "mode", "separator", "report_format"):
        if key in data and not isinstance(data[key], str):
            raise ConfigError(f"'{key}' must be a string")
    if "num_threads" in data:
        threads = data["num_threads"]
        # bool is a subclass of int
        if isinstance(threads, bool) or not isinstance(threads, int):
            raise ConfigError("'num_threads' must be an integer")
        if threads < 1:
            raise ConfigError("'num_threads' must be at least 1")
    if "report_format" in data and data["report_format"].lower() not in REPORT_FORMATS:
        raise ConfigError(
            f"'report_format' must be one of: {', '.join(REPORT_FORMATS)}"
        )


def load_config() -> Dict[str, Any]:
    """Load the user configuration merged over the defaults.

    Returns:
        A dictionary with the keys:
        - manifest_file (str): manifest file name inside ``.repo``
        - num_threads (int): worker threads for the diff aggregator
        - mode (str): comma separated diff modes
        - separator (str): commit header separator for numstat output
        - report_format (str): ``csv``, ``markdown`` or ``xml``

    Raises:
        ConfigError: If the configuration file is malformed or invalid.
    """
    config = default_config()
    config_path = _get_config_directory() / CONFIG_FILENAME

    if not config_path.exists():
        logger.debug("No configuration file at %s; using defaults", config_path)
        return config

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path.name} must contain a JSON object")

    unknown = sorted(set(data) - set(config))
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        data = {key: value for key, value in data.items() if key in config}

    _validate(data)
    config.update(data)
    logger.debug("Loaded configuration from: %s", config_path)
    return config
