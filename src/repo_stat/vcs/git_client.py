"""
Git client implementation for repo_stat.

This module wraps the Git operations needed to locate commits, render
them as patches, collect numstat history and apply or revert changes.
All subprocess calls go through :meth:`GitClient._run` so that unit
tests can mock them easily.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from repo_stat.vcs import command
from repo_stat.vcs.command import CommandError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


_SHA1_RE = re.compile(r"[0-9a-f]{5,40}")

# Separator prefixed to each commit header in ``git log --numstat`` output.
DEFAULT_NUMSTAT_SEPARATOR = "#####"

_ALREADY_APPLIED = "No changes -- Patch already applied."


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


def is_commit_id(value: object) -> bool:
    """Return True if ``value`` contains something that looks like a SHA-1."""
    return bool(_SHA1_RE.search(str(value or "")))


def ensure_sha1(value: object) -> Optional[str]:
    """Extract the first SHA-1 looking token from ``value``."""
    match = _SHA1_RE.search(str(value or ""))
    return match.group(0) if match else None


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is the root of a Git repository."""
        return (Path(path) / ".git").exists()

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` directory is found or the filesystem
        root is reached.
        """
        current = Path(start).resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command cannot be started, or exits with a non-zero
            status when ``check`` is True.
        """
        full_cmd = ["git"] + args
        try:
            result = command.run(full_cmd, cwd=self.repo_root)
        except CommandError as exc:
            raise GitError(str(exc)) from exc

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError((result.stderr or "").strip() or (result.stdout or "").strip())
        return result

    def _lines(self, args: List[str], check: bool = False) -> List[str]:
        """Run a Git command and return its non-empty stdout lines."""
        result = self._run(args, check=check)
        if result.returncode != 0:
            logger.debug("git %s exited with %s", " ".join(args), result.returncode)
            return []
        return [line for line in (result.stdout or "").splitlines() if line.strip()]

    def _has_output(self, args: List[str]) -> bool:
        """Return True if a Git command wrote anything to standard output."""
        try:
            return command.has_output(["git"] + args, cwd=self.repo_root)
        except CommandError as exc:
            raise GitError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Commit lookup
    # ------------------------------------------------------------------
    def contains_commit_on_branch(self, commit_id: str) -> bool:
        """Return True if ``commit_id`` is reachable from HEAD.

        Abbreviated ids are accepted.
        """
        if not commit_id:
            return False
        return any(sha.startswith(commit_id) for sha in self._lines(["rev-list", "HEAD"]))

    def contains_commit(self, commit_id: str) -> bool:
        """Return True if ``commit_id`` exists anywhere in the object store."""
        if not commit_id:
            return False
        # rev-parse prints the full id only when the object is a commit
        return self._has_output(["rev-parse", "--quiet", "--verify", f"{commit_id}^{{commit}}"])

    def commit_ids(
        self,
        from_revision: Optional[str] = None,
        to_revision: Optional[str] = None,
        extra_args: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """List non-merge commit ids, most recent first."""
        args = ["log", "--pretty=%H", "--no-merges"]
        if from_revision and to_revision:
            args.append(f"{from_revision}...{to_revision}")
        elif from_revision:
            args.append(from_revision)
        args.extend(extra_args or [])
        return self._lines(args)

    def commit_ids_by_grep(
        self, key: Optional[str], extra_args: Optional[Sequence[str]] = None
    ) -> List[str]:
        """List commit ids whose message contains ``key``, most recent first.

        ``key`` is matched literally. When ``key`` is None every commit
        selected by ``extra_args`` is returned. Merge commits are skipped.
        """
        args = ["log", "--pretty=%H", "--no-merges"]
        if key:
            args.extend(["--fixed-strings", f"--grep={key}"])
        args.extend(extra_args or [])
        return self._lines(args)

    def head_commit_id(self) -> Optional[str]:
        """Return the commit id of HEAD, or None for an empty repository."""
        ids = self._lines(["rev-list", "HEAD", "-n", "1"])
        return ensure_sha1(ids[0]) if ids else None

    def tail_commit_id(self) -> Optional[str]:
        """Return the root commit reachable from HEAD."""
        ids = self._lines(["rev-list", "--max-parents=0", "HEAD"])
        return ensure_sha1(ids[-1]) if ids else None

    # ------------------------------------------------------------------
    # Patch rendering
    # ------------------------------------------------------------------
    def format_patch(self, commit_id: str) -> List[str]:
        """Render ``commit_id`` as an mbox patch and return its lines."""
        result = self._run(
            [
                "format-patch",
                "-1",
                "--subject-prefix=",
                "--no-numbered",
                "--stdout",
                commit_id,
            ],
            check=False,
        )
        if result.returncode != 0:
            logger.debug("format-patch failed for %s", commit_id)
            return []
        return (result.stdout or "").splitlines()

    def show(self, commit_id: str, extra_args: Optional[Sequence[str]] = None) -> List[str]:
        """Return the output of ``git show`` for ``commit_id``."""
        result = self._run(["show", commit_id] + list(extra_args or []), check=False)
        return (result.stdout or "").splitlines() if result.returncode == 0 else []

    # ------------------------------------------------------------------
    # History statistics
    # ------------------------------------------------------------------
    def log_numstat(
        self,
        separator: str = DEFAULT_NUMSTAT_SEPARATOR,
        extra_args: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Return ``git log --numstat`` output with a header per commit.

        Each commit header has the form ``<separator>:<short sha>:<author>:<subject>``.
        """
        args = ["log", "--numstat", f"--pretty={separator}:%h:%an:%s"]
        args.extend(extra_args or [])
        return self._lines(args)

    def numstat_by_commit(self, commit_id: str) -> List[str]:
        """Return the numstat rows of a single commit."""
        return self._lines(["log", "-1", "--numstat", "--pretty=", commit_id])

    def touched_files(
        self, extra_args: Optional[Sequence[str]] = None, existing_only: bool = True
    ) -> List[str]:
        """Return the sorted set of files touched anywhere in the history.

        Parameters
        ----------
        extra_args : Sequence[str], optional
            Additional ``git log`` arguments, e.g. a revision range.
        existing_only : bool, optional
            If True, drop files that no longer exist in the working tree.
        """
        args = ["log", "--name-only", "--pretty="]
        args.extend(extra_args or [])
        files = sorted(set(self._lines(args)))
        if existing_only:
            files = [name for name in files if (self.repo_root / name).exists()]
        return files

    # ------------------------------------------------------------------
    # Applying, picking and reverting
    # ------------------------------------------------------------------
    def _run_or_abort(
        self,
        args: List[str],
        abort_args: Optional[List[str]],
        label: str,
        error_prefixes: Iterable[str] = ("error:", "fatal:"),
    ) -> bool:
        """Run a history-changing command and abort it if it reports errors.

        Returns
        -------
        bool
            True on success. On failure the half-done operation is aborted
            (when ``abort_args`` is given) so the working tree is left clean,
            and False is returned.
        """
        if not self.repo_root.is_dir():
            return False
        try:
            result = self._run(args, check=False)
        except GitError as exc:
            logger.error("%s failed: %s", label, exc)
            return False

        prefixes = tuple(error_prefixes)
        failed = False
        for line in (result.stderr or "").splitlines():
            line = line.strip()
            if line.startswith(_ALREADY_APPLIED):
                continue
            if line.startswith(prefixes):
                logger.error("%s failed: %s", label, line)
                failed = True
                break

        if failed:
            if abort_args:
                self._run(abort_args, check=False)
            return False
        return True

    def am(self, patch_path: Path, extra_args: Optional[Sequence[str]] = None) -> bool:
        """Apply and commit a mailbox patch with ``git am -3``."""
        return self._run_or_abort(
            ["am", "-3"] + list(extra_args or []) + [str(patch_path)],
            ["am", "--abort"],
            f"patch {patch_path}",
        )

    def apply(self, patch_path: Path, extra_args: Optional[Sequence[str]] = None) -> bool:
        """Apply a patch to the working tree with ``git apply -3``."""
        return self._run_or_abort(
            ["apply", "-3"] + list(extra_args or []) + [str(patch_path)],
            None,
            f"patch {patch_path}",
        )

    def cherry_pick(self, commit_id: str) -> bool:
        """Cherry-pick ``commit_id`` recording its origin (``-x``)."""
        return self._run_or_abort(
            ["cherry-pick", "-x", commit_id],
            ["cherry-pick", "--abort"],
            f"cherry-pick {commit_id}",
            error_prefixes=("error:",),
        )

    def revert(self, commit_id: str) -> bool:
        """Revert ``commit_id`` without opening an editor."""
        return self._run_or_abort(
            ["revert", commit_id, "--no-edit"],
            ["revert", "--abort"],
            f"revert {commit_id}",
            error_prefixes=("error:",),
        )

    def checkout(self, revision: str, create_branch: bool = False) -> None:
        """Check out ``revision``, optionally creating it as a new branch."""
        args = ["checkout"]
        if create_branch:
            args.append("-b")
        args.append(revision)
        self._run(args, check=True)

    def reset(self, revision: str, hard: bool = False) -> None:
        """Reset the current branch to ``revision``."""
        args = ["reset", revision]
        if hard:
            args.append("--hard")
        self._run(args, check=True)
