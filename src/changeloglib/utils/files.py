"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import mimetypes
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator

from changeloglib.models import BackupCandidate, NewFile

DEFAULT_MIME_TYPE = "application/octet-stream"


def iter_file_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield file paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_file_paths(sorted(child for child in item.rglob("*") if child.is_file()))
        elif item.is_file():
            yield item


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or DEFAULT_MIME_TYPE


def load_new_file(path: Path, data: Dict[str, Any] | None = None) -> NewFile:
    """Read ``path`` into a NewFile carrying the given predecessor tags."""
    content = path.read_bytes()
    return NewFile(
        content_hash=hashlib.sha256(content).hexdigest(),
        name=path.name,
        size=len(content),
        mime_type=guess_mime_type(path),
        data=dict(data or {}),
        content=content,
        path=path,
    )


def load_candidate(path: Path) -> BackupCandidate:
    """Build an ad-hoc predecessor candidate from a file on disk, dated by its mtime."""
    content = path.read_bytes()
    return BackupCandidate(
        content_hash=hashlib.sha256(content).hexdigest(),
        name=path.name,
        size=len(content),
        mime_type=guess_mime_type(path),
        timestamp=path.stat().st_mtime,
        content=content,
    )
