"""Tests for file utility functions."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from changeloglib.utils.files import (
    DEFAULT_MIME_TYPE,
    guess_mime_type,
    iter_file_paths,
    load_candidate,
    load_new_file,
)


class TestIterFilePaths:
    """Test iter_file_paths function."""

    def test_single_file(self, tmp_path: Path) -> None:
        """Should yield a single file."""
        document = tmp_path / "test.pdf"
        document.write_text("dummy")

        paths = list(iter_file_paths([document]))

        assert paths == [document]

    def test_nested_directories(self, tmp_path: Path) -> None:
        """Should find files of any type in nested directories."""
        subdir = tmp_path / "subdir"
        subdir.mkdir()

        (tmp_path / "root.pdf").write_text("root")
        (subdir / "nested.txt").write_text("nested")

        paths = list(iter_file_paths([tmp_path]))

        assert {p.name for p in paths} == {"root.pdf", "nested.txt"}

    def test_sorted_order(self, tmp_path: Path) -> None:
        (tmp_path / "b.pdf").write_text("b")
        (tmp_path / "a.pdf").write_text("a")

        paths = list(iter_file_paths([tmp_path]))

        assert [p.name for p in paths] == ["a.pdf", "b.pdf"]

    def test_missing_path(self, tmp_path: Path) -> None:
        """Should skip paths that do not exist."""
        assert list(iter_file_paths([tmp_path / "missing.pdf"])) == []

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert list(iter_file_paths([tmp_path])) == []


class TestGuessMimeType:
    """Test guess_mime_type function."""

    def test_known_extensions(self) -> None:
        assert guess_mime_type(Path("slides.pdf")) == "application/pdf"
        assert guess_mime_type(Path("notes.txt")) == "text/plain"

    def test_unknown_extension(self) -> None:
        assert guess_mime_type(Path("data.unknownext")) == DEFAULT_MIME_TYPE


class TestLoadNewFile:
    """Test load_new_file function."""

    def test_metadata(self, tmp_path: Path) -> None:
        document = tmp_path / "sheet.pdf"
        document.write_bytes(b"%PDF-1.4 content")

        new_file = load_new_file(document, {"module": 2})

        assert new_file.name == "sheet.pdf"
        assert new_file.size == len(b"%PDF-1.4 content")
        assert new_file.content_hash == hashlib.sha256(b"%PDF-1.4 content").hexdigest()
        assert new_file.mime_type == "application/pdf"
        assert new_file.data == {"module": 2}
        assert new_file.content == b"%PDF-1.4 content"
        assert new_file.path == document

    def test_without_tags(self, tmp_path: Path) -> None:
        document = tmp_path / "a.txt"
        document.write_text("a")

        assert load_new_file(document).data == {}


class TestLoadCandidate:
    """Test load_candidate function."""

    def test_dated_by_mtime(self, tmp_path: Path) -> None:
        document = tmp_path / "old.pdf"
        document.write_bytes(b"old")
        os.utime(document, (1_000.0, 2_000.0))

        candidate = load_candidate(document)

        assert candidate.timestamp == 2_000.0
        assert candidate.record is None
        assert candidate.backup_id is None
        assert candidate.content == b"old"
        assert candidate.size == 3
