"""Metadata similarity between a new file and a predecessor candidate.

Only metadata is compared (name, size and how recently the candidate was
stored); content is never read here.
"""

from __future__ import annotations

import time

from rapidfuzz.distance import Levenshtein

from changeloglib.models import BackupCandidate, NewFile

NAME_WEIGHT = 1.0
SIZE_WEIGHT = 1.0
RECENCY_WEIGHT = 0.5
# Decay per second of candidate age
RECENCY_DECAY = 0.01


def name_similarity(first: str, second: str) -> float:
    """Levenshtein distance relative to the longer name, flipped into [0, 1]."""
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(first, second) / longest


def size_similarity(first: int, second: int) -> float:
    largest = max(first, second)
    if largest == 0:
        return 1.0
    return 1.0 - abs(first - second) / largest


def recency_factor(timestamp: float, now: float) -> float:
    """1 for a brand-new candidate, decaying towards (never reaching) 0."""
    age = max(0.0, now - timestamp)
    return 1.0 / (1.0 + RECENCY_DECAY * age)


def score(reference: NewFile, candidate: BackupCandidate, *, now: float | None = None) -> float:
    """Weighted average of name, size and recency similarity, within [0, 1]."""
    if now is None:
        now = time.time()

    factors = (
        (NAME_WEIGHT, name_similarity(reference.name, candidate.name)),
        (SIZE_WEIGHT, size_similarity(reference.size, candidate.size)),
        (RECENCY_WEIGHT, recency_factor(candidate.timestamp, now)),
    )
    weight_sum = sum(weight for weight, _ in factors)
    return sum(weight * value for weight, value in factors) / weight_sum
