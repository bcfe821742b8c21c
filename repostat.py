#!/usr/bin/env python
"""
Thin wrapper script to invoke the repo_stat CLI.

Running ``python repostat.py`` is equivalent to running the
``repo-stat`` console script installed via ``pyproject.toml``.
"""

from repo_stat.cli import main


if __name__ == "__main__":
    main(prog_name="repo-stat")
