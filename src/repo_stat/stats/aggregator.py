"""
Parallel line-change statistics between two checkouts.

For every matched project path a :class:`DiffTask` compares the
project's files in the source tree with those in the destination tree
and counts the lines added on the destination side. Tasks are
independent and run on a thread pool; each one writes exactly one
:class:`DiffResult` into a shared :class:`ResultCollector`. The report
is sorted by path, so it does not depend on completion order.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from repo_stat.classify.file_classifier import is_binary_file
from repo_stat.vcs import command
from repo_stat.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
# Attach a null handler to prevent logging errors when no handlers are
# configured on the root logger. Logs will propagate when configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


MODE_EXISTING_ONLY = "existingonly"
MODE_INCL_NEW_FILE = "inclnewfile"
KNOWN_MODES = {
    MODE_EXISTING_ONLY: "existingOnly",
    MODE_INCL_NEW_FILE: "inclNewFile",
}
DEFAULT_MODES = "existingOnly,inclNewFile"


def parse_modes(value: str) -> List[str]:
    """Parse a comma separated mode list into normalized mode names.

    Raises
    ------
    ValueError
        If a mode is unknown or the list is empty.
    """
    modes = [part.strip().lower() for part in (value or "").split(",") if part.strip()]
    if not modes:
        raise ValueError("No mode given")
    unknown = [mode for mode in modes if mode not in KNOWN_MODES]
    if unknown:
        raise ValueError(
            f"Unknown mode(s): {', '.join(unknown)}. Expected: {', '.join(KNOWN_MODES.values())}"
        )
    return modes


def default_thread_count() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class DiffResult:
    """Added line counts for one project path, one count per mode."""

    path: str
    counts: Tuple[int, ...]


@dataclass
class AggregateReport:
    """Outcome of :meth:`DiffAggregator.run`."""

    modes: List[str]
    rows: List[DiffResult] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


class ResultCollector:
    """Thread-safe store for task results; each path is written once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: Dict[str, DiffResult] = {}

    def add(self, result: DiffResult) -> None:
        with self._lock:
            if result.path in self._results:
                raise ValueError(f"Result for '{result.path}' already collected")
            self._results[result.path] = result

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def sorted_results(self) -> List[DiffResult]:
        with self._lock:
            return [self._results[path] for path in sorted(self._results)]


def count_added_lines(source_file: Path, destination_file: Path, new_file: bool = False) -> int:
    """Count the ``+`` lines of ``diff -U 0 source_file destination_file``.

    With ``new_file`` set, ``-N`` is passed so a file missing on one side
    is compared as empty. Without it such a pair counts nothing.

    Raises
    ------
    CommandError
        If ``diff`` cannot be started.
    """
    args = ["diff", "-U", "0"]
    if new_file:
        args.append("-N")
    args.extend([str(source_file), str(destination_file)])

    added = 0
    in_hunk = False
    for line in command.run_lines(args):
        if line.startswith("@@"):
            in_hunk = True
        elif in_hunk and line.startswith("+"):
            added += 1
    return added


class DiffTask:
    """Compute the added line counts of one project path."""

    def __init__(
        self,
        path: str,
        source_dir: Path,
        destination_dir: Path,
        modes: Sequence[str],
        source_git_args: Optional[Sequence[str]] = None,
        destination_git_args: Optional[Sequence[str]] = None,
    ) -> None:
        self.path = path
        self.source_dir = Path(source_dir)
        self.destination_dir = Path(destination_dir)
        self.modes = list(modes)
        self.source_git_args = list(source_git_args or [])
        self.destination_git_args = list(destination_git_args or [])

    def _touched_files(self, repo: Path, git_args: Sequence[str]) -> List[str]:
        # Each tree is asked separately so a nested repository's own
        # history is never counted as part of the containing project.
        return GitClient(repo).touched_files(git_args)

    def execute(self) -> DiffResult:
        """Run the comparison.

        Any failure yields zero counts for this path so the other tasks
        of the batch still report.
        """
        try:
            counts = self._count()
        except Exception as exc:
            logger.warning("Diff of %s failed: %s", self.path, exc)
            counts = [0] * len(self.modes)
        return DiffResult(path=self.path, counts=tuple(counts))

    def _count(self) -> List[int]:
        source_files = set(self._touched_files(self.source_dir, self.source_git_args))
        destination_files = set(self._touched_files(self.destination_dir, self.destination_git_args))
        totals = {mode: 0 for mode in self.modes}

        for name in sorted(source_files | destination_files):
            if is_binary_file(name):
                continue
            in_both = name in source_files and name in destination_files
            source_file = self.source_dir / name
            destination_file = self.destination_dir / name
            for mode in self.modes:
                if mode == MODE_EXISTING_ONLY:
                    if in_both:
                        totals[mode] += count_added_lines(source_file, destination_file)
                else:
                    totals[mode] += count_added_lines(source_file, destination_file, new_file=True)

        return [totals[mode] for mode in self.modes]


class DiffAggregator:
    """Run :class:`DiffTask` for many project paths on a thread pool.

    Parameters
    ----------
    modes : Sequence[str]
        Normalized mode names (see :func:`parse_modes`).
    num_threads : int, optional
        Worker count. Defaults to the number of processors.
    source_git_args, destination_git_args : Sequence[str], optional
        Extra ``git log`` arguments used to list touched files per side.
    """

    def __init__(
        self,
        modes: Sequence[str],
        num_threads: Optional[int] = None,
        source_git_args: Optional[Sequence[str]] = None,
        destination_git_args: Optional[Sequence[str]] = None,
    ) -> None:
        self.modes = list(modes)
        self.num_threads = max(1, int(num_threads or default_thread_count()))
        self.source_git_args = list(source_git_args or [])
        self.destination_git_args = list(destination_git_args or [])

    def build_tasks(
        self,
        source_root: Path,
        destination_root: Path,
        matched: Dict[str, str],
    ) -> Tuple[List[DiffTask], List[str]]:
        """Create one task per matched path whose directories exist on both sides."""
        tasks: List[DiffTask] = []
        missing: List[str] = []
        for path, destination_path in matched.items():
            source_dir = Path(source_root) / path
            destination_dir = Path(destination_root) / destination_path
            if not source_dir.is_dir() or not destination_dir.is_dir():
                logger.debug("Skipping %s: not checked out on both sides", path)
                missing.append(path)
                continue
            tasks.append(
                DiffTask(
                    path,
                    source_dir,
                    destination_dir,
                    self.modes,
                    self.source_git_args,
                    self.destination_git_args,
                )
            )
        return tasks, missing

    def run_tasks(self, tasks: Iterable[DiffTask]) -> List[DiffResult]:
        """Execute ``tasks`` in parallel and return their results sorted by path."""
        collector = ResultCollector()

        def work(task: DiffTask) -> None:
            collector.add(task.execute())

        with ThreadPoolExecutor(max_workers=self.num_threads) as ex:
            futs = [ex.submit(work, task) for task in tasks]
            for i, fut in enumerate(as_completed(futs), start=1):
                fut.result()
                logger.debug("Finished %d/%d diff tasks", i, len(futs))
        return collector.sorted_results()

    def run(
        self,
        source_root: Path,
        destination_root: Path,
        matched: Dict[str, str],
        missing: Optional[Iterable[str]] = None,
    ) -> AggregateReport:
        """Diff every matched path and return the sorted report.

        ``missing`` lists paths already known to have no counterpart; they
        are reported together with paths whose directories are absent.
        """
        tasks, absent = self.build_tasks(source_root, destination_root, matched)
        logger.info("Running %d diff task(s) on %d thread(s)", len(tasks), self.num_threads)
        rows = self.run_tasks(tasks)
        all_missing = sorted(set(missing or []) | set(absent))
        return AggregateReport(modes=self.modes, rows=rows, missing=all_missing)
