"""
Commit metadata extracted from a patch header.

:func:`parse_patch` reads an mbox style patch (as produced by
``git format-patch``) line by line and fills a :class:`CommitMetadata`
record until the first ``diff --git`` line. Missing header fields are
not an error; they simply stay ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from repo_stat.patch.stream import PatchSource, as_stream


DIFF_BOUNDARY = "diff --git"
_TRUNCATION_MARKER = ".../"
_PATCH_TAG_RE = re.compile(r"^.*?\[PATCH[^\]]*\]\s*")


@dataclass
class CommitMetadata:
    """Header fields of one patch.

    Attributes
    ----------
    id : str, optional
        Commit id taken from the mbox ``From <sha> ...`` line.
    title : str, optional
        Subject with the ``[PATCH ...]`` tag removed.
    date : str, optional
        Raw value of the ``Date:`` header.
    author : str, optional
        Raw value of the ``From:`` header.
    change_tag : str, optional
        Value of a ``Change-Id:`` trailer, stable across rebases.
    modified_files : List[str], optional
        Raw ``path | N ++--`` lines of the diffstat, or None if the
        patch has no diffstat.
    modified_filenames : List[str]
        File names extracted from ``modified_files``.
    """

    id: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    author: Optional[str] = None
    change_tag: Optional[str] = None
    modified_files: Optional[List[str]] = None
    modified_filenames: List[str] = field(default_factory=list)


def parse_modified_file(line: str) -> Tuple[Optional[str], int]:
    """Split a diffstat line into file name and changed-line count.

    ``" src/.../deep/file.c | 12 +++---"`` gives ``("deep/file.c", 12)``.
    The count is 0 when it is not a plain number (e.g. ``Bin``).
    Lines without a bar give ``(None, 0)``.
    """
    line = line.strip()
    if "|" not in line:
        return None, 0
    name, _, rest = line.partition("|")
    name = name.strip()
    pos = name.find(_TRUNCATION_MARKER)
    if pos >= 0:
        name = name[pos + len(_TRUNCATION_MARKER):]

    tokens = rest.split()
    count = int(tokens[0]) if tokens and tokens[0].isdigit() else 0
    return name, count


def _strip_patch_tag(subject: str) -> str:
    if "[PATCH" not in subject:
        return subject
    return _PATCH_TAG_RE.sub("", subject, count=1).strip()


def _parse_line(commit: CommitMetadata, line: str) -> bool:
    """Apply one header line to ``commit``. Return True to stop parsing."""
    if commit.id is None and line.startswith("From "):
        tokens = line.split()
        if len(tokens) > 1:
            commit.id = tokens[1]
    elif commit.author is None and line.startswith("From: "):
        commit.author = line[len("From: "):]
    elif commit.date is None and line.startswith("Date: "):
        commit.date = line[len("Date: "):]
    elif commit.title is None and line.startswith("Subject:"):
        commit.title = _strip_patch_tag(line[len("Subject:"):].strip())
    elif commit.title == "":
        # subject wrapped onto the next line
        commit.title = line
    elif commit.change_tag is None and line.startswith("Change-Id: "):
        commit.change_tag = line[len("Change-Id: "):]
    elif line == "---" and commit.modified_files is None:
        commit.modified_files = []
    else:
        if line.startswith(DIFF_BOUNDARY):
            return True
        if commit.modified_files is not None:
            if "|" not in line:
                # "N files changed, ..." closes the diffstat
                return True
            commit.modified_files.append(line)
            name, _ = parse_modified_file(line)
            if name is not None:
                commit.modified_filenames.append(name)
    return False


def parse_patch(source: PatchSource) -> CommitMetadata:
    """Parse the header of a patch.

    The stream is rewound first, so parsing the same body twice yields
    the same result.
    """
    stream = as_stream(source)
    stream.rewind()
    commit = CommitMetadata()
    while stream.has_next():
        if _parse_line(commit, stream.next_line().strip()):
            break
    return commit


def skip_to_diff(source: PatchSource) -> bool:
    """Advance ``source`` past its first ``diff --git`` line.

    Returns False if the stream has no such line.
    """
    stream = as_stream(source)
    while stream.has_next():
        if stream.next_line().startswith(DIFF_BOUNDARY):
            return True
    return False


def most_modified_file(source: PatchSource, commit: Optional[CommitMetadata] = None) -> Optional[str]:
    """Return the full path of the file with the most changed lines.

    The candidate is taken from the diffstat (the first file wins on
    ties) and then looked up in the ``diff --git`` section, since the
    diffstat may abbreviate long paths with ``.../``.
    """
    stream = as_stream(source)
    if commit is None:
        commit = parse_patch(stream)

    candidate: Optional[str] = None
    most_lines = -1
    for line in commit.modified_files or []:
        name, lines = parse_modified_file(line)
        if name and lines > most_lines:
            candidate, most_lines = name, lines
    if candidate is None:
        return None

    stream.rewind()
    if not skip_to_diff(stream):
        return candidate
    for line in stream:
        if candidate not in line:
            continue
        for token in line.strip().split():
            if candidate in token:
                if token.startswith(("a/", "b/")):
                    token = token[2:]
                return token
    return candidate
