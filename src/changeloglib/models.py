"""Core ChangelogLib data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class NewFile:
    """A document awaiting predecessor resolution.

    ``data`` holds the tags a definite predecessor must carry, e.g. the
    logical slot the upload belongs to.
    """

    content_hash: str
    name: str
    size: int
    mime_type: str
    data: Dict[str, Any] = field(default_factory=dict, hash=False)
    content: Optional[bytes] = field(default=None, repr=False, compare=False, hash=False)
    path: Optional[Path] = field(default=None, compare=False, hash=False)


@dataclass(slots=True)
class BackupRecord:
    """Blob store entry describing where and why a backup was taken."""

    id: int
    context: str
    scope: str
    data: Dict[str, Any]
    timestamp: float


@dataclass(slots=True, eq=False)
class BackupCandidate:
    """A potential predecessor.

    Compared by identity: the assignment search tracks which candidates are
    consumed, and two ad-hoc files with identical metadata are still two
    different candidates. ``record`` is None for candidates that were not
    loaded from the backup store.
    """

    content_hash: str
    name: str
    size: int
    mime_type: str
    timestamp: float
    record: Optional[BackupRecord] = None
    content: Optional[bytes] = field(default=None, repr=False)

    @property
    def backup_id(self) -> Optional[int]:
        return self.record.id if self.record is not None else None


@dataclass(frozen=True, slots=True)
class PredecessorCandidate:
    """A backup candidate scored against one new file."""

    backup: BackupCandidate
    similarity: float


@dataclass(slots=True)
class Mapping:
    """A new file paired with its chosen predecessor, or with none."""

    new_file: NewFile
    predecessor: Optional[PredecessorCandidate] = None

    @property
    def similarity(self) -> float:
        if self.predecessor is None:
            return 0.0
        return self.predecessor.similarity

    def has_changed(self) -> bool:
        """Whether the new file differs in content from its predecessor.

        A file without predecessor always counts as a change.
        """
        if self.predecessor is None:
            return True
        return self.new_file.content_hash != self.predecessor.backup.content_hash


@dataclass(slots=True)
class Distribution:
    """Mappings for a batch of new files, in input order."""

    mappings: List[Mapping] = field(default_factory=list)

    @property
    def similarity(self) -> float:
        return sum(mapping.similarity for mapping in self.mappings)

    def with_mapping(self, mapping: Mapping) -> "Distribution":
        """Return a new distribution with ``mapping`` placed in front."""
        return Distribution([mapping, *self.mappings])

    def is_better_than(self, other: "Distribution") -> bool:
        return self.similarity > other.similarity

    def changed_mappings(self) -> List[Mapping]:
        return [mapping for mapping in self.mappings if mapping.has_changed()]
