"""
Patch equivalence checks.

Two patches are considered the same change when they touch the same
files and carry the same hunks. In exact mode the diff sections must be
identical line for line. In robust mode line order and hunk position are
ignored and lines that carry no meaning for the file type (blank lines,
comments) are dropped before the added and removed lines are compared
as multisets. Robust mode is meant for patches that were rebased or
reflowed.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from repo_stat.classify.file_classifier import FORMAT_UNKNOWN, classify_file, is_noise_line
from repo_stat.patch.model import parse_modified_file, parse_patch, skip_to_diff
from repo_stat.patch.stream import PatchSource, PatchStream, as_stream


logger = logging.getLogger(__name__)
# Attach a null handler to prevent logging errors when no handlers are
# configured on the root logger. Logs will propagate when configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


def _filenames(modified_files: Sequence[str]) -> List[str]:
    names = []
    for line in modified_files:
        name, _ = parse_modified_file(line)
        if name is not None:
            names.append(name)
    return sorted(names)


def is_same_modified_files(
    modified_files1: Optional[Sequence[str]],
    modified_files2: Optional[Sequence[str]],
    robust: bool = False,
) -> bool:
    """Compare two diffstat blocks.

    The raw lines must match exactly, unless ``robust`` is set, in which
    case it is enough for both to name the same set of files.
    """
    files1 = list(modified_files1 or [])
    files2 = list(modified_files2 or [])
    if files1 == files2:
        return True
    if robust:
        return _filenames(files1) == _filenames(files2)
    return False


def collect_modified_lines(stream: PatchStream, robust: bool = False) -> Tuple[List[str], List[str]]:
    """Read the rest of ``stream`` and return its added and removed lines.

    The ``+``/``-`` marker and surrounding whitespace are removed and
    empty lines are skipped. With ``robust`` set, lines classified as
    noise for the current file (taken from the last ``+++`` header) are
    skipped too.
    """
    added: List[str] = []
    removed: List[str] = []
    file_type = FORMAT_UNKNOWN

    for raw in stream:
        # markers are only meaningful in the first column
        line = raw.rstrip()
        if line.startswith("+++ "):
            file_type = classify_file(line)
            continue
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            target = added
        elif line.startswith("-"):
            target = removed
        else:
            continue

        content = line[1:].strip()
        if not content:
            continue
        if robust and is_noise_line(content, file_type):
            continue
        target.append(content)

    return added, removed


def _same_lines_exact(stream1: PatchStream, stream2: PatchStream) -> bool:
    while stream1.has_next() and stream2.has_next():
        if stream1.next_line().strip() != stream2.next_line().strip():
            return False
    return stream1.at_end() and stream2.at_end()


def is_same_patch(patch1: PatchSource, patch2: PatchSource, robust: bool = False) -> bool:
    """Return True if both patches describe the same change.

    Parameters
    ----------
    patch1, patch2 : PatchStream or list of str
        The patch bodies to compare. Streams are rewound before use.
    robust : bool, optional
        Compare file sets and changed lines order-insensitively and
        ignore noise lines.
    """
    stream1 = as_stream(patch1)
    stream2 = as_stream(patch2)
    if stream1 is stream2:
        # both sides share one read position, so compare it with itself
        stream1.rewind()
        return skip_to_diff(stream1)

    header1 = parse_patch(stream1)
    header2 = parse_patch(stream2)
    if not is_same_modified_files(header1.modified_files, header2.modified_files, robust):
        logger.debug("Modified files differ: %s vs %s", header1.modified_filenames, header2.modified_filenames)
        return False

    stream1.rewind()
    stream2.rewind()
    if not skip_to_diff(stream1) or not skip_to_diff(stream2):
        return False

    if not robust:
        return _same_lines_exact(stream1, stream2)

    added1, removed1 = collect_modified_lines(stream1, robust=True)
    added2, removed2 = collect_modified_lines(stream2, robust=True)
    return sorted(added1) == sorted(added2) and sorted(removed1) == sorted(removed2)
