"""Narrow a backup pool to the scored, eligible predecessors of one new file."""

from __future__ import annotations

import logging
import time
from typing import Any, List, Mapping, Sequence

from changeloglib.matching.similarity import score
from changeloglib.models import BackupCandidate, NewFile, PredecessorCandidate

LOGGER = logging.getLogger(__name__)


def is_definite_match(required: Mapping[str, Any], candidate: BackupCandidate) -> bool:
    """Check whether ``candidate`` carries every tag in ``required`` with an equal value.

    Candidates without a store record have no tags and never match.
    """
    if candidate.record is None:
        return False
    tags = candidate.record.data
    return all(key in tags and tags[key] == value for key, value in required.items())


def filter_candidates(
    new_file: NewFile,
    pool: Sequence[BackupCandidate],
    *,
    ensure_mime_type: bool = True,
    min_similarity: float = 0.5,
    now: float | None = None,
) -> List[PredecessorCandidate]:
    """Score the pool against ``new_file`` and keep the eligible candidates.

    If the new file carries tags and some candidates match all of them, only
    those definite predecessors are considered. With ``ensure_mime_type`` a
    differing MIME type rules a candidate out; otherwise type agreement is
    folded into the similarity. Pool order is preserved.
    """
    if now is None:
        now = time.time()

    considered: Sequence[BackupCandidate] = pool
    if new_file.data:
        definite = [candidate for candidate in pool if is_definite_match(new_file.data, candidate)]
        if definite:
            LOGGER.debug(
                "%s: narrowed %d candidates to %d definite predecessors",
                new_file.name,
                len(pool),
                len(definite),
            )
            considered = definite

    results: List[PredecessorCandidate] = []
    for candidate in considered:
        fitting_mime_type = new_file.mime_type == candidate.mime_type
        if ensure_mime_type and not fitting_mime_type:
            continue

        similarity = score(new_file, candidate, now=now)
        if not ensure_mime_type:
            if fitting_mime_type:
                similarity += 1.0
            similarity /= 2.0

        if similarity < min_similarity:
            continue

        results.append(PredecessorCandidate(backup=candidate, similarity=similarity))

    LOGGER.debug("%s: %d eligible predecessor candidates", new_file.name, len(results))
    return results
