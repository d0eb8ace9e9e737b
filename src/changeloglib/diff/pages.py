"""Attribute line-diff hunks to document pages.

Extracted texts mark page boundaries with a form feed, and the line-diff
report uses the classic ``L1[,L2]<op>R1[,R2]`` hunk headers. Combining the two
gives how many lines changed on every page of both documents.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

PAGE_BREAK = "\f"
DEFAULT_MAX_CHANGE_RATIO = 0.5

_HUNK_RE = re.compile(r"^(\d+)(?:,(\d+))?([acd])(\d+)(?:,(\d+))?$")
_NEWLINE_RE = re.compile(r"\r\n|\n|\r")


def _split_lines(text: str) -> List[str]:
    # str.splitlines() would also split on the form feed itself
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


@dataclass(frozen=True, slots=True)
class PageIndex:
    """Line positions of the page breaks in one document.

    ``boundaries`` holds the 1-based numbers of the lines carrying a page
    break, matching the numbering of diff hunks. The break starts the first
    line of the following page.
    """

    boundaries: Tuple[int, ...] = ()
    line_count: int = 0

    @classmethod
    def from_text(cls, text: str) -> "PageIndex":
        lines = _split_lines(text)
        # A blank page leaves several breaks on one line, each ends a page
        boundaries = tuple(
            number
            for number, line in enumerate(lines, start=1)
            for _ in range(line.count(PAGE_BREAK))
        )
        return cls(boundaries=boundaries, line_count=len(lines))

    @property
    def page_count(self) -> int:
        return len(self.boundaries) + 1

    def page_of_line(self, line: int) -> int:
        """0-based page of ``line``: the first page ending after it, else the last page."""
        return bisect_right(self.boundaries, line)


@dataclass(frozen=True, slots=True)
class DiffHunk:
    """One change record of a normal-format line diff."""

    operation: str
    left: range
    right: range

    @classmethod
    def parse(cls, line: str) -> Optional["DiffHunk"]:
        """Parse a hunk header such as ``2,3c2``; other diff lines yield None."""
        match = _HUNK_RE.match(line.strip())
        if match is None:
            return None
        left_start, left_end, operation, right_start, right_end = match.groups()
        return cls(
            operation=operation,
            left=_line_range(left_start, left_end),
            right=_line_range(right_start, right_end),
        )


def _line_range(start: Optional[str], end: Optional[str]) -> range:
    if not start:
        return range(0)
    first = int(start)
    last = int(end) if end else first
    return range(first, last + 1)


def parse_hunks(diff_output: Union[str, Iterable[Union[str, DiffHunk]]]) -> List[DiffHunk]:
    if isinstance(diff_output, str):
        diff_output = _NEWLINE_RE.split(diff_output)
    hunks = []
    for item in diff_output:
        hunk = item if isinstance(item, DiffHunk) else DiffHunk.parse(item)
        if hunk is not None:
            hunks.append(hunk)
    return hunks


@dataclass(slots=True)
class DiffReport:
    """Per-page change counts for an original (A) and an updated (B) document."""

    page_changes: Tuple[List[int], List[int]]
    line_counts: Tuple[int, int]
    max_change_ratio: float = DEFAULT_MAX_CHANGE_RATIO
    hunks: List[DiffHunk] = field(default_factory=list, repr=False)

    @property
    def changed_lines(self) -> int:
        return sum(self.page_changes[1])

    @property
    def change_ratio(self) -> float:
        # +1 keeps an empty updated document from dividing by zero
        return self.changed_lines / (self.line_counts[1] + 1)

    @property
    def acceptable(self) -> bool:
        """Whether the updated document changed little enough to be a real update."""
        return self.change_ratio <= self.max_change_ratio

    @property
    def changed_pages(self) -> List[int]:
        """1-based pages of the updated document with at least one change."""
        return [page + 1 for page, amount in enumerate(self.page_changes[1]) if amount > 0]

    def summary(self) -> str:
        return ", ".join(str(page) for page in self.changed_pages)

    def to_dict(self) -> dict:
        return {
            "page_changes": [list(self.page_changes[0]), list(self.page_changes[1])],
            "line_counts": list(self.line_counts),
            "changed_lines": self.changed_lines,
            "change_ratio": self.change_ratio,
            "acceptable": self.acceptable,
            "changed_pages": self.changed_pages,
        }


def analyze(
    text_a: str,
    text_b: str,
    diff_output: Union[str, Iterable[Union[str, DiffHunk]]],
    *,
    max_change_ratio: float = DEFAULT_MAX_CHANGE_RATIO,
) -> DiffReport:
    """Count the changed lines of every page of both documents."""
    indexes = (PageIndex.from_text(text_a), PageIndex.from_text(text_b))
    counters = ([0] * indexes[0].page_count, [0] * indexes[1].page_count)

    hunks = parse_hunks(diff_output)
    for hunk in hunks:
        for document, lines in enumerate((hunk.left, hunk.right)):
            for line in lines:
                counters[document][indexes[document].page_of_line(line)] += 1

    return DiffReport(
        page_changes=counters,
        line_counts=(indexes[0].line_count, indexes[1].line_count),
        max_change_ratio=max_change_ratio,
        hunks=hunks,
    )
