"""
Find the commit in a repository that corresponds to a patch.

The patch may come from a different copy of the tree (a fork, or the
same branch before a rebase), so its commit id is not necessarily
known to the target repository. :class:`PatchResolver` tries a list of
strategies from the cheapest and most precise to the most permissive
and stops at the first one that finds a commit:

1. the commit id recorded in the patch, if the repository has it;
2. commits whose message contains the patch's ``Change-Id``;
3. commits whose message contains the patch title;
4. (robust mode only) commits since the patch date touching the file
   the patch modifies most.

Candidates from steps 2-4 are confirmed by regenerating them with
``git format-patch`` and comparing with :func:`is_same_patch`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from repo_stat.patch.compare import is_same_patch
from repo_stat.patch.model import CommitMetadata, most_modified_file, parse_patch
from repo_stat.patch.stream import LineStream, PatchSource, PatchStream, as_stream
from repo_stat.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
# Attach a null handler to prevent logging errors when no handlers are
# configured on the root logger. Logs will propagate when configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class ResolveRequest:
    """Everything a resolution strategy needs to know about one patch."""

    patch: PatchStream
    commit: CommitMetadata
    on_branch: bool = True
    skip_direct_check: bool = False
    robust: bool = False


Strategy = Callable[[ResolveRequest], Optional[str]]


class PatchResolver:
    """Resolve patches to commit ids of one repository."""

    def __init__(self, git_client: GitClient) -> None:
        self.git_client = git_client

    @property
    def strategies(self) -> List[Tuple[str, Strategy]]:
        """Ordered resolution strategies; the first non-None result wins."""
        return [
            ("commit id", self._by_commit_id),
            ("change tag", self._by_change_tag),
            ("title", self._by_title),
            ("date and file", self._by_date_and_file),
        ]

    def resolve(
        self,
        patch: PatchSource,
        on_branch: bool = True,
        skip_direct_check: bool = False,
        robust: bool = False,
    ) -> Optional[str]:
        """Return the id of the commit matching ``patch``, or None.

        Parameters
        ----------
        patch : PatchStream or list of str
            The patch to look up.
        on_branch : bool, optional
            Accept the patch's own commit id only if it is reachable from
            HEAD. When False any commit in the object store is accepted.
        skip_direct_check : bool, optional
            Do not trust the patch's own commit id.
        robust : bool, optional
            Use loose patch comparison and enable the date based search.
        """
        stream = as_stream(patch)
        request = ResolveRequest(
            patch=stream,
            commit=parse_patch(stream),
            on_branch=on_branch,
            skip_direct_check=skip_direct_check,
            robust=robust,
        )
        for name, strategy in self.strategies:
            commit_id = strategy(request)
            if commit_id:
                logger.debug("Resolved %s by %s", commit_id, name)
                return commit_id
        logger.info("No matching commit found for '%s'", request.commit.title or request.commit.id or "patch")
        return None

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------
    def _by_commit_id(self, request: ResolveRequest) -> Optional[str]:
        commit_id = request.commit.id
        if request.skip_direct_check or not commit_id:
            return None
        try:
            if request.on_branch:
                found = self.git_client.contains_commit_on_branch(commit_id)
            else:
                found = self.git_client.contains_commit(commit_id)
        except GitError as exc:
            logger.warning("Could not look up commit %s: %s", commit_id, exc)
            return None
        return commit_id if found else None

    def _by_change_tag(self, request: ResolveRequest) -> Optional[str]:
        if not request.commit.change_tag:
            return None
        return self._try_match(request.commit.change_tag, request.patch)

    def _by_title(self, request: ResolveRequest) -> Optional[str]:
        if not request.commit.title:
            return None
        return self._try_match(request.commit.title, request.patch, robust=request.robust)

    def _by_date_and_file(self, request: ResolveRequest) -> Optional[str]:
        commit = request.commit
        if not request.robust or not commit.date or not commit.modified_files:
            return None
        filename = most_modified_file(request.patch, commit)
        if not filename:
            return None
        return self._try_match(
            None,
            request.patch,
            extra_args=[f"--since={commit.date}", "--", filename],
            robust=True,
        )

    # ------------------------------------------------------------------
    # Candidate verification
    # ------------------------------------------------------------------
    def _try_match(
        self,
        key: Optional[str],
        patch: PatchStream,
        extra_args: Optional[Sequence[str]] = None,
        robust: bool = False,
    ) -> Optional[str]:
        """Return the first logged commit matching ``key`` that equals ``patch``."""
        try:
            candidates = self.git_client.commit_ids_by_grep(key, extra_args)
        except GitError as exc:
            logger.warning("git log failed while searching for '%s': %s", key, exc)
            return None

        for candidate in candidates:
            try:
                body = self.git_client.format_patch(candidate)
            except GitError as exc:
                logger.warning("Could not render %s: %s", candidate, exc)
                continue
            if is_same_patch(LineStream(body), patch, robust=robust):
                return candidate
        return None
