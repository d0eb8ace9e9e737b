"""Optimal assignment of backups to new files.

The search is exhaustive: every file is tried unmapped and with each of its
candidates, so the cost grows exponentially with the batch size. Callers cap
batches to a few dozen files.

Ordering is part of the result. The unmapped branch is explored first and a
later branch only replaces the best one when it is strictly better, so ties
leave files unmapped, and among mapped options prefer earlier candidates.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Sequence, Set

from changeloglib.models import BackupCandidate, Distribution, Mapping, NewFile, PredecessorCandidate

LOGGER = logging.getLogger(__name__)


class AssignmentSolver:
    """Backtracking search for the distribution with the highest total similarity."""

    def __init__(
        self,
        new_files: Sequence[NewFile],
        candidates: Sequence[Sequence[PredecessorCandidate]],
    ) -> None:
        if len(new_files) != len(candidates):
            raise ValueError("Every new file needs exactly one candidate list")
        self.new_files = list(new_files)
        self.candidates = [list(entries) for entries in candidates]
        self._in_use: Set[BackupCandidate] = set()

    @property
    def in_use(self) -> frozenset[BackupCandidate]:
        """Backups claimed along the branch currently explored."""
        return frozenset(self._in_use)

    def solve(self) -> Distribution:
        best = self._search(0)
        LOGGER.debug(
            "Best distribution for %d files: similarity %.4f", len(self.new_files), best.similarity
        )
        return best

    @contextmanager
    def _claim(self, backup: BackupCandidate) -> Iterator[None]:
        self._in_use.add(backup)
        try:
            yield
        finally:
            self._in_use.discard(backup)

    def _search(self, index: int) -> Distribution:
        if index >= len(self.new_files):
            return Distribution()

        new_file = self.new_files[index]
        best = self._search(index + 1).with_mapping(Mapping(new_file, None))

        for candidate in self.candidates[index]:
            if candidate.backup in self._in_use:
                continue
            with self._claim(candidate.backup):
                distribution = self._search(index + 1).with_mapping(Mapping(new_file, candidate))
            if distribution.is_better_than(best):
                best = distribution

        return best


def solve(
    new_files: Sequence[NewFile],
    candidates: Sequence[Sequence[PredecessorCandidate]],
) -> Distribution:
    """Assign each backup to at most one new file, maximizing total similarity."""
    return AssignmentSolver(new_files, candidates).solve()


def used_backups(distribution: Distribution) -> List[BackupCandidate]:
    return [m.predecessor.backup for m in distribution.mappings if m.predecessor is not None]
