"""Tests for running the diff tool."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from changeloglib.diff.runner import (
    DiffUnavailableError,
    compare_documents,
    is_diff_installed,
    run_line_diff,
)


def _completed(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestIsDiffInstalled:
    """Test is_diff_installed."""

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_installed(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(0, "diff (GNU diffutils) 3.10")

        assert is_diff_installed("/usr/bin/diff") is True
        assert mock_run.call_args[0][0] == ["/usr/bin/diff", "-v"]

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError("no such file")

        assert is_diff_installed("/nowhere/diff") is False

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_failing_binary(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(2, stderr="unknown option")

        assert is_diff_installed() is False


class TestRunLineDiff:
    """Test run_line_diff."""

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_ignores_whitespace_and_blank_lines(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(1, "2c2\n< a\n---\n> b\n")

        output = run_line_diff(tmp_path / "a.txt", tmp_path / "b.txt", diff_path="diff")

        assert output == "2c2\n< a\n---\n> b\n"
        assert mock_run.call_args[0][0] == [
            "diff",
            "-w",
            "-B",
            str(tmp_path / "a.txt"),
            str(tmp_path / "b.txt"),
        ]

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_identical_files(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(0)

        assert run_line_diff(tmp_path / "a.txt", tmp_path / "b.txt") == ""

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_trouble_exit_status(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(2, stderr="No such file or directory")

        with pytest.raises(DiffUnavailableError):
            run_line_diff(tmp_path / "a.txt", tmp_path / "b.txt")

    @patch("changeloglib.diff.runner.subprocess.run")
    def test_missing_binary(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = FileNotFoundError("diff")

        with pytest.raises(DiffUnavailableError):
            run_line_diff(tmp_path / "a.txt", tmp_path / "b.txt")


class TestCompareDocuments:
    """Test compare_documents."""

    @patch("changeloglib.diff.runner.run_line_diff")
    def test_plain_text_documents(self, mock_diff: MagicMock) -> None:
        """Should diff the extracted texts and count the changes per page."""
        mock_diff.return_value = "4c4\n< old\n---\n> new\n"
        old = b"one\ntwo\nthree\n\ffour\nfive\n"
        new = b"one\ntwo\nthree\n\fFOUR\nfive\n"

        report = compare_documents(old, "text/plain", new, "text/plain")

        assert report is not None
        assert report.changed_pages == [2]
        assert report.acceptable is True
        old_path, new_path = mock_diff.call_args[0]
        assert old_path.name == "old.txt"
        assert new_path.name == "new.txt"

    @patch("changeloglib.diff.runner.run_line_diff")
    def test_not_applicable(self, mock_diff: MagicMock) -> None:
        """Unsupported types skip the diff entirely."""
        assert compare_documents(b"x", "image/png", b"y", "text/plain") is None
        mock_diff.assert_not_called()

    @patch("changeloglib.diff.runner.run_line_diff")
    def test_diff_unavailable_propagates(self, mock_diff: MagicMock) -> None:
        mock_diff.side_effect = DiffUnavailableError("diff missing")

        with pytest.raises(DiffUnavailableError):
            compare_documents(b"a\n", "text/plain", b"b\n", "text/plain")

    @patch("changeloglib.diff.runner.run_line_diff")
    def test_passes_change_ratio(self, mock_diff: MagicMock) -> None:
        mock_diff.return_value = "1c1\n"

        report = compare_documents(
            b"a\nb\n", "text/plain", b"c\nb\n", "text/plain", max_change_ratio=0.1
        )

        assert report.acceptable is False

    @pytest.mark.skipif(shutil.which("diff") is None, reason="diff tool not installed")
    def test_with_installed_diff(self) -> None:
        """Runs the real diff tool on plain text with page breaks."""
        old = b"one\ntwo\nthree\n\ffour\nfive\nsix\n"
        new = b"one\ntwo\nthree\n\fFOUR\nFIVE\nsix\n"

        report = compare_documents(old, "text/plain", new, "text/plain", diff_path=shutil.which("diff"))

        assert report.changed_pages == [2]
        assert report.page_changes[1] == [0, 2]
        assert report.change_ratio == pytest.approx(2 / 7)
        assert report.acceptable is True
