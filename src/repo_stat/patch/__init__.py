"""
Patch parsing, comparison and commit resolution.

:mod:`repo_stat.patch.model` turns a patch into :class:`CommitMetadata`,
:mod:`repo_stat.patch.compare` decides whether two patches are the same
change and :mod:`repo_stat.patch.resolver` finds the matching commit in
another repository.
"""

from .compare import is_same_patch  # noqa: F401
from .model import CommitMetadata, parse_patch  # noqa: F401
from .resolver import PatchResolver  # noqa: F401
from .stream import FileStream, LineStream, PatchStream  # noqa: F401
