import subprocess
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from repo_stat.vcs import command
from repo_stat.vcs.command import CommandError


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


class TestCommandRunner(unittest.TestCase):
    def test_run_decodes_output(self) -> None:
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="a\nb\n", stderr="")) as mock_run:
            result = command.run(["git", "status"], cwd="/repo")
        self.assertEqual(result.stdout, "a\nb\n")
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ["git", "status"])
        self.assertEqual(kwargs["cwd"], "/repo")
        self.assertEqual(kwargs["encoding"], "utf-8")
        self.assertEqual(kwargs["errors"], "replace")
        self.assertEqual(kwargs["stderr"], subprocess.PIPE)

    def test_discard_stderr(self) -> None:
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="", stderr=None)) as mock_run:
            command.run(["git", "log"], discard_stderr=True)
        self.assertEqual(mock_run.call_args[1]["stderr"], subprocess.DEVNULL)
        self.assertIsNone(mock_run.call_args[1]["cwd"])

    def test_missing_executable_raises_command_error(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(CommandError):
                command.run(["git", "status"])

    def test_run_lines_and_has_output(self) -> None:
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="x\ny\n", stderr=None)):
            self.assertEqual(command.run_lines(["ls"]), ["x", "y"])
            self.assertTrue(command.has_output(["ls"]))
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="  \n", stderr=None)):
            self.assertFalse(command.has_output(["ls"]))

    def test_run_lines_splits_on_newline_only(self) -> None:
        stdout = "+page\x0cbreak\n+sep\x1cfield\n\n+last"
        with patch("subprocess.run", return_value=DummyProc(returncode=1, stdout=stdout, stderr=None)):
            self.assertEqual(command.run_lines(["diff"]), ["+page\x0cbreak", "+sep\x1cfield", "", "+last"])
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="", stderr=None)):
            self.assertEqual(command.run_lines(["diff"]), [])


if __name__ == "__main__":
    unittest.main()
