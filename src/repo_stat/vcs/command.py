"""
Command execution helpers for repo_stat.

All external commands (``git`` in practice) are started through this
module so that output decoding is done in one place and unit tests can
replace :func:`run` with a mock. Output is decoded as UTF-8; invalid
byte sequences are replaced instead of raising.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class CommandError(Exception):
    """Raised when an external command cannot be started."""

    pass


def run(
    args: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    discard_stderr: bool = False,
) -> subprocess.CompletedProcess:
    """Run ``args`` in ``cwd`` and return the completed process.

    Parameters
    ----------
    args : Sequence[str]
        Command line, e.g. ``["git", "log", "--oneline"]``.
    cwd : str or Path, optional
        Working directory. Defaults to the current directory.
    discard_stderr : bool, optional
        If True, the error stream is sent to ``/dev/null`` and
        ``result.stderr`` is ``None``.

    Raises
    ------
    CommandError
        If the executable cannot be found or started.
    """
    logger.debug("Executing command: %s (cwd=%s)", " ".join(args), cwd)
    try:
        return subprocess.run(
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL if discard_stderr else subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        logger.error("Failed to start command %s: %s", args[0] if args else "", exc)
        raise CommandError(f"Failed to start {' '.join(args)}: {exc}") from exc


def run_lines(
    args: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    discard_stderr: bool = True,
) -> List[str]:
    """Run a command and return its standard output split into lines.

    Only newline characters end a line; form feeds and other separators
    that :meth:`str.splitlines` honours stay inside the line.
    """
    result = run(args, cwd=cwd, discard_stderr=discard_stderr)
    lines = (result.stdout or "").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def has_output(args: Sequence[str], cwd: Optional[Union[str, Path]] = None) -> bool:
    """Return True if the command wrote anything to standard output."""
    result = run(args, cwd=cwd, discard_stderr=True)
    return bool((result.stdout or "").strip())
