"""
Per-file and per-author line statistics from ``git log --numstat``.

Rows are ``added<TAB>removed<TAB>path``; binary files report ``-`` which
counts as zero. Each commit is introduced by a header line starting
with a separator, ``<separator>:<short sha>:<author>:<subject>`` (see
:meth:`GitClient.log_numstat`). Totals are built by folding an
associative, commutative merge over the rows, so the order of the input
lines does not change the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Dict, Iterable, Mapping, Optional, Tuple

from repo_stat.vcs.git_client import DEFAULT_NUMSTAT_SEPARATOR


@dataclass(frozen=True)
class NumStat:
    """Added and removed line counts."""

    added: int = 0
    removed: int = 0

    def __add__(self, other: "NumStat") -> "NumStat":
        return NumStat(self.added + other.added, self.removed + other.removed)


def _count(value: str) -> int:
    value = value.strip()
    return int(value) if value.isdigit() else 0


def parse_numstat_line(
    line: str, separator: str = DEFAULT_NUMSTAT_SEPARATOR
) -> Optional[Tuple[str, NumStat]]:
    """Parse one numstat row.

    Returns None for commit headers, blank lines and malformed rows.
    """
    if not line.strip() or line.startswith(separator):
        return None
    parts = line.rstrip("\r\n").split("\t", 2)
    if len(parts) != 3:
        parts = line.split(None, 2)
    if len(parts) != 3 or not parts[2].strip():
        return None
    added, removed, path = parts
    return path.strip(), NumStat(_count(added), _count(removed))


def parse_author(line: str, separator: str = DEFAULT_NUMSTAT_SEPARATOR) -> str:
    """Return the author name from a commit header line."""
    fields = line[len(separator):].split(":", 3)
    return fields[2] if len(fields) >= 3 else ""


def aggregate(entries: Iterable[Tuple[str, NumStat]]) -> Dict[str, NumStat]:
    """Sum ``(key, NumStat)`` entries per key."""
    totals: Dict[str, NumStat] = {}
    for key, stat in entries:
        totals[key] = totals.get(key, NumStat()) + stat
    return totals


def merge(a: Mapping[str, NumStat], b: Mapping[str, NumStat]) -> Dict[str, NumStat]:
    """Merge two aggregated mappings; ``merge(a, b) == merge(b, a)``."""
    return aggregate(list(a.items()) + list(b.items()))


def combine(*totals: Mapping[str, NumStat]) -> Dict[str, NumStat]:
    """Merge any number of aggregated mappings into one."""
    return reduce(merge, totals, {})


def _file_entries(lines: Iterable[str], separator: str) -> Iterable[Tuple[str, NumStat]]:
    for line in lines:
        parsed = parse_numstat_line(line, separator)
        if parsed is not None:
            yield parsed


def _author_entries(lines: Iterable[str], separator: str) -> Iterable[Tuple[str, NumStat]]:
    author = ""
    for line in lines:
        if line.startswith(separator):
            author = parse_author(line, separator)
            continue
        parsed = parse_numstat_line(line, separator)
        if parsed is not None and author:
            yield author, parsed[1]


def numstat_per_file(
    lines: Iterable[str], separator: str = DEFAULT_NUMSTAT_SEPARATOR
) -> Dict[str, NumStat]:
    """Total added/removed lines per file."""
    return aggregate(_file_entries(lines, separator))


def numstat_per_author(
    lines: Iterable[str], separator: str = DEFAULT_NUMSTAT_SEPARATOR
) -> Dict[str, NumStat]:
    """Total added/removed lines per author.

    Rows that appear before the first commit header are ignored.
    """
    return aggregate(_author_entries(lines, separator))
