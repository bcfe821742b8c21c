"""
Top-level package for repo_stat.

repo_stat finds the commit that corresponds to a patch in another copy
of a source tree and computes line-change statistics across many
repository checkouts. The command line entry point lives in
:mod:`repo_stat.cli`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
