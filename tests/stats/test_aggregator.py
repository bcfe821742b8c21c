import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import pytest

from repo_stat.stats.aggregator import (
    MODE_EXISTING_ONLY,
    MODE_INCL_NEW_FILE,
    DiffAggregator,
    DiffResult,
    DiffTask,
    ResultCollector,
    count_added_lines,
    parse_modes,
)
from repo_stat.vcs import command
from repo_stat.vcs.command import CommandError
from repo_stat.vcs.git_client import GitClient, GitError


BOTH_MODES = [MODE_EXISTING_ONLY, MODE_INCL_NEW_FILE]

requires_diff = unittest.skipIf(shutil.which("diff") is None, "diff is not installed")


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestDiffAggregator(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        base = Path(self.tmpdir.name)
        self.src = base / "src"
        self.dst = base / "dst"
        # files touched in the history of each project checkout
        self.touched = {}

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _project(self, path, source_files, destination_files):
        for name, text in source_files.items():
            _write(self.src / path / name, text)
        for name, text in destination_files.items():
            _write(self.dst / path / name, text)
        (self.src / path).mkdir(parents=True, exist_ok=True)
        (self.dst / path).mkdir(parents=True, exist_ok=True)
        self.touched[(self.src / path).resolve()] = sorted(source_files)
        self.touched[(self.dst / path).resolve()] = sorted(destination_files)

    def _fake_touched(self):
        touched = self.touched

        def fake_touched_files(self, extra_args=None, existing_only=True):
            return touched[Path(self.repo_root).resolve()]

        return fake_touched_files

    @requires_diff
    def test_counts_added_lines_per_mode(self) -> None:
        self._project(
            "proj",
            {"file.txt": "hello\n"},
            {
                "file.txt": "world\nhello\nagain\n",
                "new.txt": "1\n2\n3\n",
                "logo.png": "not really an image\n",
            },
        )
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator(BOTH_MODES, num_threads=2).run(self.src, self.dst, {"proj": "proj"})

        self.assertEqual(report.rows, [DiffResult("proj", (2, 5))])
        self.assertEqual(report.missing, [])

    @requires_diff
    def test_single_mode(self) -> None:
        self._project("proj", {"a.c": "x\n"}, {"a.c": "x\ny\n", "b.c": "z\n"})
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator([MODE_INCL_NEW_FILE]).run(self.src, self.dst, {"proj": "proj"})
        self.assertEqual(report.rows, [DiffResult("proj", (2,))])

    @requires_diff
    def test_destination_path_may_differ(self) -> None:
        self._project("libs/a", {"a.c": "x\n"}, {})
        _write(self.dst / "product" / "libs" / "a" / "a.c", "x\nmore\n")
        self.touched[(self.src / "libs/a").resolve()] = ["a.c"]
        self.touched[(self.dst / "product/libs/a").resolve()] = ["a.c"]
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator(BOTH_MODES).run(self.src, self.dst, {"libs/a": "product/libs/a"})
        self.assertEqual(report.rows, [DiffResult("libs/a", (1, 1))])

    @requires_diff
    def test_thread_count_does_not_change_report(self) -> None:
        matched = {}
        for i in range(8):
            path = f"p{i}"
            self._project(path, {"f.txt": "a\n"}, {"f.txt": "a\n" + "b\n" * i})
            matched[path] = path
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = self._fake_touched()
            serial = DiffAggregator(BOTH_MODES, num_threads=1).run(self.src, self.dst, matched)
            parallel = DiffAggregator(BOTH_MODES, num_threads=4).run(self.src, self.dst, matched)

        self.assertEqual(serial, parallel)
        self.assertEqual([row.path for row in serial.rows], sorted(matched))
        self.assertEqual(serial.rows[3], DiffResult("p3", (3, 3)))

    def test_missing_directories_and_known_missing(self) -> None:
        self._project("here", {}, {})
        (self.src / "only-src").mkdir(parents=True)
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator(BOTH_MODES).run(
                self.src, self.dst, {"here": "here", "only-src": "only-src"}, missing=["gone"]
            )
        self.assertEqual(report.rows, [DiffResult("here", (0, 0))])
        self.assertEqual(report.missing, ["gone", "only-src"])

    def test_git_failure_gives_zero_counts(self) -> None:
        self._project("broken", {"a.c": "x\n"}, {"a.c": "x\ny\n"})
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = GitError("fatal: not a git repository")
            report = DiffAggregator(BOTH_MODES).run(self.src, self.dst, {"broken": "broken"})
        self.assertEqual(report.rows, [DiffResult("broken", (0, 0))])

    def test_unexpected_task_error_does_not_abort_batch(self) -> None:
        self._project("good", {}, {})
        self._project("bad", {}, {})
        bad_root = (self.src / "bad").resolve()
        touched = self.touched

        def fake_touched_files(self, extra_args=None, existing_only=True):
            root = Path(self.repo_root).resolve()
            if root == bad_root:
                raise RuntimeError("unexpected")
            return touched[root]

        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = fake_touched_files
            report = DiffAggregator(BOTH_MODES, num_threads=2).run(
                self.src, self.dst, {"good": "good", "bad": "bad"}
            )
        self.assertEqual(report.rows, [DiffResult("bad", (0, 0)), DiffResult("good", (0, 0))])

    def test_missing_diff_command_gives_zero_counts(self) -> None:
        self._project("proj", {"a.c": "x\n"}, {"a.c": "x\ny\n"})
        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched, patch.object(
            command, "run_lines", side_effect=CommandError("diff not found")
        ):
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator(BOTH_MODES).run(self.src, self.dst, {"proj": "proj"})
        self.assertEqual(report.rows, [DiffResult("proj", (0, 0))])

    def test_modes_run_diff_with_and_without_new_file(self) -> None:
        self._project("proj", {"a.c": "x\n"}, {"a.c": "x\ny\n", "b.c": "z\n"})
        calls = []

        def fake_run_lines(args, cwd=None, discard_stderr=True):
            calls.append(args[:-2])
            return ["--- a", "+++ b", "@@ -1,0 +2 @@", "+y"]

        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched, patch.object(
            command, "run_lines", side_effect=fake_run_lines
        ):
            mock_touched.side_effect = self._fake_touched()
            report = DiffAggregator(BOTH_MODES).run(self.src, self.dst, {"proj": "proj"})

        self.assertEqual(report.rows, [DiffResult("proj", (1, 2))])
        # a.c once per mode, b.c only when new files are included
        self.assertEqual(
            calls,
            [["diff", "-U", "0"], ["diff", "-U", "0", "-N"], ["diff", "-U", "0", "-N"]],
        )

    def test_task_passes_git_arguments(self) -> None:
        self._project("proj", {}, {})
        seen = []

        def fake_touched_files(self, extra_args=None, existing_only=True):
            seen.append(list(extra_args))
            return []

        with patch.object(GitClient, "touched_files", autospec=True) as mock_touched:
            mock_touched.side_effect = fake_touched_files
            DiffTask("proj", self.src / "proj", self.dst / "proj", BOTH_MODES, ["v1..v2"], ["--since=2023"]).execute()
        self.assertEqual(seen, [["v1..v2"], ["--since=2023"]])


class TestResultCollector(unittest.TestCase):
    def test_each_path_once(self) -> None:
        collector = ResultCollector()
        collector.add(DiffResult("b", (1,)))
        collector.add(DiffResult("a", (2,)))
        with self.assertRaises(ValueError):
            collector.add(DiffResult("a", (3,)))
        self.assertEqual(len(collector), 2)
        self.assertEqual([r.path for r in collector.sorted_results()], ["a", "b"])


def test_count_added_lines_reads_hunks_only(tmp_path):
    output = [
        "--- old/a.c\t2023-10-03 10:00:00",
        "+++ new/a.c\t2023-10-03 10:00:00",
        "@@ -1 +1,2 @@",
        "-x",
        "+y",
        "+++z",
        "@@ -5,0 +7 @@",
        "+tail",
    ]
    with patch.object(command, "run_lines", return_value=output) as mock_run_lines:
        assert count_added_lines(tmp_path / "old", tmp_path / "new", new_file=True) == 3
    assert mock_run_lines.call_args[0][0] == [
        "diff",
        "-U",
        "0",
        "-N",
        str(tmp_path / "old"),
        str(tmp_path / "new"),
    ]


@pytest.mark.skipif(shutil.which("diff") is None, reason="diff is not installed")
@pytest.mark.parametrize(
    "source, destination, new_file, expected",
    [
        # a longest common subsequence covers the whole destination
        ("c\na\na\nc\na\na\n", "c\nc\na\n", False, 0),
        ("a\nb\nc\n", "a\nx\nc\nd\n", False, 2),
        ("gone\n", "", False, 0),
        (None, "n\nm\n", True, 2),
        (None, "n\nm\n", False, 0),
    ],
)
def test_count_added_lines_with_diff(tmp_path, source, destination, new_file, expected):
    source_file = tmp_path / "source.txt"
    destination_file = tmp_path / "destination.txt"
    if source is not None:
        source_file.write_text(source, encoding="utf-8")
    destination_file.write_text(destination, encoding="utf-8")
    assert count_added_lines(source_file, destination_file, new_file=new_file) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("existingOnly", [MODE_EXISTING_ONLY]),
        ("existingOnly,inclNewFile", BOTH_MODES),
        (" INCLNEWFILE , existingonly ", [MODE_INCL_NEW_FILE, MODE_EXISTING_ONLY]),
    ],
)
def test_parse_modes(value, expected):
    assert parse_modes(value) == expected


@pytest.mark.parametrize("value", ["", " , ", "existingOnly,everything"])
def test_parse_modes_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_modes(value)


if __name__ == "__main__":
    unittest.main()
