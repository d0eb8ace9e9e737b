"""Predecessor detection for a batch of new files."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Sequence

from changeloglib.backup.storage import SQLiteBackupStore
from changeloglib.matching.candidates import filter_candidates
from changeloglib.matching.solver import AssignmentSolver, used_backups
from changeloglib.models import BackupCandidate, Distribution, Mapping, NewFile

LOGGER = logging.getLogger(__name__)


class UpdateDetector:
    """Finds which stored backup (if any) each new file is an update of.

    Candidates come from the backup store for the given context and scope,
    newest first, followed by any further candidates supplied by the caller
    (e.g. files whose deletion is still in progress).
    """

    def __init__(
        self,
        store: SQLiteBackupStore | None = None,
        *,
        ensure_mime_type: bool = True,
        min_similarity: float = 0.5,
        now: float | None = None,
    ) -> None:
        self.store = store
        self.ensure_mime_type = ensure_mime_type
        self.min_similarity = min_similarity
        self.now = now

    def build_pool(
        self,
        context: str,
        scope: str,
        further_candidates: Iterable[BackupCandidate] = (),
    ) -> List[BackupCandidate]:
        pool: List[BackupCandidate] = []
        if self.store is not None:
            pool.extend(self.store.list_candidates(context, scope))
        pool.extend(further_candidates)
        return pool

    def detect(
        self,
        new_files: Sequence[NewFile],
        context: str,
        scope: str,
        further_candidates: Iterable[BackupCandidate] = (),
    ) -> Distribution:
        """Return the distribution of backups to ``new_files`` with the highest similarity."""
        pool = self.build_pool(context, scope, further_candidates)
        now = self.now if self.now is not None else time.time()
        LOGGER.info(
            "Matching %d new files against %d candidates (context=%s, scope=%s)",
            len(new_files),
            len(pool),
            context,
            scope,
        )

        candidates = [
            filter_candidates(
                new_file,
                pool,
                ensure_mime_type=self.ensure_mime_type,
                min_similarity=self.min_similarity,
                now=now,
            )
            for new_file in new_files
        ]
        distribution = AssignmentSolver(new_files, candidates).solve()
        LOGGER.info(
            "Mapped %d of %d files (total similarity %.4f)",
            len(used_backups(distribution)),
            len(new_files),
            distribution.similarity,
        )
        return distribution

    def delete_found_predecessor(self, mapping: Mapping) -> bool:
        """Delete the backup consumed by ``mapping`` so it cannot be reused.

        Returns False for unmapped files and for predecessors that did not
        come from the store.
        """
        if mapping.predecessor is None or self.store is None:
            return False
        backup_id = mapping.predecessor.backup.backup_id
        if backup_id is None:
            return False
        return self.store.delete(backup_id)

    def backup_files(
        self,
        files: Iterable[NewFile],
        context: str,
        scope: str,
        data: Dict[str, Any] | None = None,
    ) -> List[int]:
        """Store ``files`` as backups so later uploads can find them as predecessors."""
        if self.store is None:
            raise ValueError("A backup store is required to create backups")
        ids = []
        for new_file in files:
            if new_file.content is None:
                raise ValueError(f"No content loaded for {new_file.name}")
            ids.append(
                self.store.add_backup(
                    context,
                    scope,
                    name=new_file.name,
                    content=new_file.content,
                    mime_type=new_file.mime_type,
                    data=data if data is not None else new_file.data,
                )
            )
        return ids
