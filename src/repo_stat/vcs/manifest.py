"""
Manifest handling for trees checked out with the ``repo`` tool.

A ``repo`` checkout keeps its manifest under ``.repo/manifests``. The
manifest maps logical project paths (stable between two checkouts of
the same product) to repository names. This module reads that mapping
and matches the projects of a source tree against those of a
destination tree.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Set, Tuple, Union


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


REPO_DIR = ".repo"
MANIFEST_DIR = f"{REPO_DIR}/manifests"
DEFAULT_MANIFEST_FILE = "manifest.xml"
MANIFEST_SEARCH_DIRS = (REPO_DIR, MANIFEST_DIR)

Filter = Optional[Union[str, Pattern[str]]]


class ManifestError(Exception):
    """Raised when a manifest file exists but cannot be parsed."""

    pass


def is_repo_root(base_path: Path) -> bool:
    """Return True if ``base_path`` is the top of a ``repo`` checkout."""
    return (Path(base_path) / MANIFEST_DIR).is_dir()


def find_manifest(base_path: Path, manifest_file: str = DEFAULT_MANIFEST_FILE) -> Optional[Path]:
    """Locate ``manifest_file`` in the usual ``.repo`` directories."""
    for directory in MANIFEST_SEARCH_DIRS:
        candidate = Path(base_path) / directory / manifest_file
        if candidate.is_file():
            return candidate
    return None


def _compile(pattern: Filter) -> Optional[Pattern[str]]:
    if pattern is None or pattern == "":
        return None
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def _collect(
    base_path: Path,
    manifest_file: str,
    result: Dict[str, str],
    path_filter: Optional[Pattern[str]],
    group_filter: Optional[Pattern[str]],
    seen: Set[Path],
) -> None:
    manifest_path = find_manifest(base_path, manifest_file)
    if manifest_path is None:
        logger.debug("Manifest %s not found under %s", manifest_file, base_path)
        return
    if manifest_path in seen:
        return
    seen.add(manifest_path)

    try:
        root = ET.parse(manifest_path).getroot()
    except (ET.ParseError, OSError) as exc:
        logger.error("Failed to parse manifest %s: %s", manifest_path, exc)
        raise ManifestError(f"Invalid manifest {manifest_path}: {exc}") from exc

    for include in root.findall("include"):
        name = include.get("name")
        if name:
            _collect(base_path, name, result, path_filter, group_filter, seen)

    for project in root.findall("project"):
        name = project.get("name", "")
        path = project.get("path") or name
        if not path:
            continue
        if path_filter is not None and not path_filter.search(path):
            continue
        groups = project.get("groups", "")
        if groups and group_filter is not None and not group_filter.search(groups):
            continue
        result[path] = name


def load_manifest_paths(
    base_path: Path,
    manifest_file: str = DEFAULT_MANIFEST_FILE,
    path_filter: Filter = None,
    group_filter: Filter = None,
) -> Dict[str, str]:
    """Return the mapping of logical project path to repository name.

    ``<include name="...">`` elements are followed recursively. Projects
    without an explicit ``path`` use their ``name``. ``path_filter`` is
    matched against the project path and ``group_filter`` against its
    ``groups`` attribute; projects without groups always pass the group
    filter.
    """
    result: Dict[str, str] = {}
    _collect(
        Path(base_path),
        manifest_file,
        result,
        _compile(path_filter),
        _compile(group_filter),
        set(),
    )
    return result


def filter_paths(mapping: Dict[str, str], path_filter: Filter) -> Dict[str, str]:
    """Keep only the entries whose path matches ``path_filter``."""
    pattern = _compile(path_filter)
    if pattern is None:
        return dict(mapping)
    return {path: name for path, name in mapping.items() if pattern.search(path)}


def match_exact(source: Dict[str, str], destination: Dict[str, str]) -> Dict[str, str]:
    """Return the source entries whose path also exists in ``destination``."""
    return {path: name for path, name in source.items() if path in destination}


def _is_suffix_pair(a: str, b: str) -> bool:
    return a.endswith("/" + b) or b.endswith("/" + a)


def match_robust(
    source: Dict[str, str], destination: Dict[str, str]
) -> Tuple[Dict[str, str], List[str]]:
    """Match source paths to destination paths.

    Identical paths are matched first. Remaining source paths are then
    matched to a destination path when one is a ``/``-suffix of the
    other, e.g. ``libs/a`` and ``project/libs/a``. Among several
    candidates the shortest destination path wins; ties keep the first
    one. A destination path is used at most once.

    Returns
    -------
    Tuple[Dict[str, str], List[str]]
        Mapping of source path to destination path, and the source paths
        that found no counterpart (in source order).
    """
    matched: Dict[str, str] = {}
    claimed: Set[str] = set()

    for path in source:
        if path in destination:
            matched[path] = path
            claimed.add(path)

    for path in source:
        if path in matched:
            continue
        best: Optional[str] = None
        for candidate in destination:
            if candidate in claimed or not _is_suffix_pair(path, candidate):
                continue
            if best is None or len(candidate) < len(best):
                best = candidate
        if best is not None:
            matched[path] = best
            claimed.add(best)

    # keep the source order in the result
    ordered = {path: matched[path] for path in source if path in matched}
    missing = [path for path in source if path not in matched]
    return ordered, missing


def match_repositories(
    source_root: Path,
    destination_root: Path,
    manifest_file: str = DEFAULT_MANIFEST_FILE,
    path_filter: Filter = None,
) -> Tuple[Dict[str, str], List[str]]:
    """Load both manifests and match their project paths.

    If the destination is not a ``repo`` checkout every source path is
    mapped to itself.
    """
    if not is_repo_root(source_root):
        return {}, []
    source = filter_paths(load_manifest_paths(source_root, manifest_file), path_filter)
    if not is_repo_root(destination_root):
        return {path: path for path in source}, []
    destination = filter_paths(load_manifest_paths(destination_root, manifest_file), path_filter)
    return match_robust(source, destination)


def flat_name(path: str) -> str:
    """Turn a project path into a single file name component."""
    return path.replace("/", "-")
