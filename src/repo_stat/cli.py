"""
Command line interface for the repo_stat tool.

This module defines the ``main`` command group used as the entry point
of the ``repo-stat`` console script. It offers three commands:

* ``diff`` - count lines added between two ``repo`` checkouts, per project;
* ``find-commit`` - find the commit in a Git repository matching a patch;
* ``numstat`` - sum added/removed lines per file or per author.

Status messages go to standard error so that reports written to
standard output stay machine readable. Exit codes are listed below.
"""

from __future__ import annotations

import logging
import shlex
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import click

from repo_stat import __version__
from repo_stat.config.loader import ConfigError, load_config
from repo_stat.patch.resolver import PatchResolver
from repo_stat.patch.stream import FileStream
from repo_stat.report.reporter import REPORT_FORMATS, create_reporter
from repo_stat.stats.aggregator import KNOWN_MODES, DiffAggregator, parse_modes
from repo_stat.stats.numstat import numstat_per_author, numstat_per_file
from repo_stat.vcs.git_client import GitClient, GitError
from repo_stat.vcs.manifest import ManifestError, is_repo_root, match_repositories

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests). When logging is configured by
# the CLI, root handlers will be added and messages will propagate.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Print a message when a step starts and its duration when it ends."""

    def __init__(self, message: str):
        self.message = message
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        click.echo(f"→ {self.message}...", err=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            elapsed = time.time() - self.start_time
            click.echo(f"  ✓ Done ({elapsed:.1f}s)", err=True)
        return False


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=True)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=True)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=True)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config_or_exit() -> Dict[str, object]:
    try:
        return load_config()
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        raise click.exceptions.Exit(EXIT_CONFIG_ERROR)


def _split_git_opts(value: Optional[str]) -> List[str]:
    """Split a ``--source-git-opt`` style value into git arguments."""
    return shlex.split(value) if value else []


def _require_repo_root(path: Path, flag: str) -> Path:
    root = path.expanduser().resolve()
    if not is_repo_root(root):
        print_error(f"{flag} {root} is not a repo directory")
        raise click.exceptions.Exit(EXIT_NO_REPO)
    return root


def _write_report(
    fmt: str, output: Optional[str], header: Sequence[str], rows: Sequence[Sequence[object]]
) -> None:
    try:
        reporter = create_reporter(fmt, output)
    except (OSError, ValueError) as exc:
        print_error(f"Cannot write report: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    try:
        reporter.emit_header(header)
        for row in rows:
            reporter.emit_row(row)
    finally:
        reporter.close()
    if output:
        print_success(f"Report written to {reporter.out_path}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="repo-stat")
def main(verbose: bool) -> None:
    """Patch identity and line statistics across repository checkouts."""
    # Use force=True to ensure handlers are reconfigured on subsequent
    # invocations (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )


@main.command("diff")
@click.option("-s", "--source", "source", default=".", type=click.Path(file_okay=False), help="Source repo directory.")
@click.option("-t", "--target", "target", default=".", type=click.Path(file_okay=False), help="Target repo directory.")
@click.option("--source-git-opt", default=None, help="Extra git log arguments for the source side.")
@click.option("--target-git-opt", default=None, help="Extra git log arguments for the target side.")
@click.option("-j", "--num-threads", type=int, default=None, help="Number of worker threads (default: processor count).")
@click.option("-g", "--git-path", default=None, help="Only diff project paths matching this regular expression.")
@click.option("-m", "--mode", default=None, help="Comma separated modes: existingOnly, inclNewFile.")
@click.option("-p", "--prefix", default="", help="Prefix prepended to every reported path.")
@click.option("--manifest-file", default=None, help="Manifest file name inside .repo.")
@click.option("-f", "--format", "fmt", type=click.Choice(REPORT_FORMATS, case_sensitive=False), default=None, help="Report format.")
@click.option("-o", "--output", default=None, help="Report file path (default: standard output).")
def diff_command(
    source: str,
    target: str,
    source_git_opt: Optional[str],
    target_git_opt: Optional[str],
    num_threads: Optional[int],
    git_path: Optional[str],
    mode: Optional[str],
    prefix: str,
    manifest_file: Optional[str],
    fmt: Optional[str],
    output: Optional[str],
) -> None:
    """Count lines added in TARGET relative to SOURCE for every project."""
    config = _load_config_or_exit()
    source_root = _require_repo_root(Path(source), "-s")
    target_root = _require_repo_root(Path(target), "-t")

    try:
        modes = parse_modes(mode or str(config["mode"]))
    except ValueError as exc:
        print_error(str(exc))
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)
    if num_threads is not None and num_threads < 1:
        print_error("--num-threads must be at least 1")
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)

    try:
        with ProgressIndicator("Matching projects"):
            matched, missing = match_repositories(
                source_root,
                target_root,
                manifest_file or str(config["manifest_file"]),
                git_path,
            )
        print_info(f"{len(matched)} project(s) matched, {len(missing)} missing")

        aggregator = DiffAggregator(
            modes,
            num_threads=num_threads or int(config["num_threads"]),
            source_git_args=_split_git_opts(source_git_opt),
            destination_git_args=_split_git_opts(target_git_opt),
        )
        with ProgressIndicator(f"Diffing projects on {aggregator.num_threads} thread(s)"):
            report = aggregator.run(source_root, target_root, matched, missing)
    except ManifestError as exc:
        print_error(f"Manifest error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)

    for path in report.missing:
        print_warning(f"Missing in target: {path}")

    header = ["path"] + [KNOWN_MODES[m] for m in modes]
    rows = [[f"{prefix}{row.path}"] + list(row.counts) for row in report.rows]
    _write_report(fmt or str(config["report_format"]), output, header, rows)


@main.command("find-commit")
@click.argument("git_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("patch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--anywhere", is_flag=True, help="Accept the patch's commit id if it exists anywhere, not only on HEAD.")
@click.option("--skip-direct", is_flag=True, help="Do not trust the commit id recorded in the patch.")
@click.option("--robust", is_flag=True, help="Ignore line order and comment/blank lines when comparing.")
def find_commit_command(
    git_dir: str, patch_file: str, anywhere: bool, skip_direct: bool, robust: bool
) -> None:
    """Print the commit in GIT_DIR that corresponds to PATCH_FILE."""
    root = Path(git_dir).expanduser().resolve()
    if not GitClient.is_repo(root):
        print_error(f"{root} is not a Git repository")
        raise click.exceptions.Exit(EXIT_NO_REPO)

    resolver = PatchResolver(GitClient(root))
    with FileStream(patch_file) as stream:
        commit_id = resolver.resolve(
            stream,
            on_branch=not anywhere,
            skip_direct_check=skip_direct,
            robust=robust,
        )

    if commit_id:
        click.echo(commit_id)
    else:
        print_warning(f"No matching commit found for {patch_file}")


@main.command("numstat", context_settings={"ignore_unknown_options": True})
@click.argument("git_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("git_args", nargs=-1, type=click.UNPROCESSED)
@click.option("--per", type=click.Choice(["file", "author"]), default="file", show_default=True, help="Aggregation key.")
@click.option("--separator", default=None, help="Commit header separator used in the git log output.")
@click.option("-f", "--format", "fmt", type=click.Choice(REPORT_FORMATS, case_sensitive=False), default=None, help="Report format.")
@click.option("-o", "--output", default=None, help="Report file path (default: standard output).")
def numstat_command(
    git_dir: str,
    git_args: Tuple[str, ...],
    per: str,
    separator: Optional[str],
    fmt: Optional[str],
    output: Optional[str],
) -> None:
    """Sum added and removed lines in GIT_DIR per file or per author.

    Any GIT_ARGS are passed to ``git log`` (e.g. a revision range).
    """
    config = _load_config_or_exit()
    root = Path(git_dir).expanduser().resolve()
    if not GitClient.is_repo(root):
        print_error(f"{root} is not a Git repository")
        raise click.exceptions.Exit(EXIT_NO_REPO)

    separator = separator or str(config["separator"])
    try:
        lines = GitClient(root).log_numstat(separator, list(git_args))
    except GitError as exc:
        print_error(f"Git error: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)

    if per == "author":
        totals = numstat_per_author(lines, separator)
    else:
        totals = numstat_per_file(lines, separator)

    rows = [[key, stat.added, stat.removed] for key, stat in sorted(totals.items())]
    _write_report(fmt or str(config["report_format"]), output, [per, "added", "removed"], rows)
