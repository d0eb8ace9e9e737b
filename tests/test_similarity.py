"""Tests for metadata similarity scoring."""

from __future__ import annotations

import itertools

import pytest

from changeloglib.matching.similarity import (
    name_similarity,
    recency_factor,
    score,
    size_similarity,
)
from changeloglib.models import BackupCandidate, NewFile

NOW = 1_000_000.0


def _new_file(name: str = "slides.pdf", size: int = 1000) -> NewFile:
    return NewFile(content_hash="new", name=name, size=size, mime_type="application/pdf")


def _candidate(name: str = "slides.pdf", size: int = 1000, age: float = 0.0) -> BackupCandidate:
    return BackupCandidate(
        content_hash="old",
        name=name,
        size=size,
        mime_type="application/pdf",
        timestamp=NOW - age,
    )


class TestNameSimilarity:
    """Test name_similarity."""

    def test_identical(self) -> None:
        assert name_similarity("file.pdf", "file.pdf") == 1.0

    def test_relative_to_longer_name(self) -> None:
        """One edit on an eleven character name."""
        assert name_similarity("file_v1.pdf", "file_v2.pdf") == pytest.approx(1 - 1 / 11)

    def test_completely_different(self) -> None:
        assert name_similarity("abc", "xyz") == 0.0

    def test_both_empty(self) -> None:
        """Should not divide by zero."""
        assert name_similarity("", "") == 1.0

    def test_one_empty(self) -> None:
        assert name_similarity("", "abc") == 0.0


class TestSizeSimilarity:
    """Test size_similarity."""

    def test_identical(self) -> None:
        assert size_similarity(500, 500) == 1.0

    def test_relative_difference(self) -> None:
        assert size_similarity(750, 1000) == pytest.approx(0.75)
        assert size_similarity(1000, 750) == pytest.approx(0.75)

    def test_both_zero(self) -> None:
        """Should not divide by zero."""
        assert size_similarity(0, 0) == 1.0

    def test_one_zero(self) -> None:
        assert size_similarity(0, 10) == 0.0


class TestRecencyFactor:
    """Test recency_factor."""

    def test_brand_new(self) -> None:
        assert recency_factor(NOW, NOW) == 1.0

    def test_decay(self) -> None:
        assert recency_factor(NOW - 100, NOW) == pytest.approx(0.5)

    def test_future_timestamp_clamped(self) -> None:
        assert recency_factor(NOW + 50, NOW) == 1.0

    def test_old_candidates_stay_positive(self) -> None:
        assert recency_factor(0.0, 1e12) > 0.0


class TestScore:
    """Test the weighted score."""

    def test_identical_and_fresh(self) -> None:
        assert score(_new_file(), _candidate(), now=NOW) == pytest.approx(1.0)

    def test_weighted_average(self) -> None:
        """Name and size weigh 1, recency 0.5."""
        result = score(_new_file(size=1000), _candidate(size=500, age=100), now=NOW)

        assert result == pytest.approx((1.0 + 0.5 + 0.5 * 0.5) / 2.5)

    def test_uses_current_time_by_default(self) -> None:
        candidate = BackupCandidate("old", "slides.pdf", 1000, "application/pdf", timestamp=0.0)

        assert score(_new_file(), candidate) < 0.81

    def test_always_within_unit_interval(self) -> None:
        names = ["", "a", "slides.pdf", "completely-different-name.docx"]
        sizes = [0, 1, 1000, 10**9]
        ages = [0.0, 1.0, 3600.0, 1e9]

        for new_name, old_name, new_size, old_size, age in itertools.product(
            names, names, sizes, sizes, ages
        ):
            result = score(_new_file(new_name, new_size), _candidate(old_name, old_size, age), now=NOW)
            assert 0.0 <= result <= 1.0
