"""
Line-change statistics.

:mod:`repo_stat.stats.numstat` sums ``git log --numstat`` rows per file
or per author; :mod:`repo_stat.stats.aggregator` diffs many project
checkouts in parallel.
"""

from .aggregator import DiffAggregator, DiffResult, parse_modes  # noqa: F401
from .numstat import NumStat, numstat_per_author, numstat_per_file  # noqa: F401
