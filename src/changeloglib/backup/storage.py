"""SQLite store for backups of superseded files."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from changeloglib.models import BackupCandidate, BackupRecord

LOGGER = logging.getLogger(__name__)


class SQLiteBackupStore:
    """Persistence layer for backups, partitioned by context and scope."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS backups (
                    id INTEGER PRIMARY KEY,
                    context TEXT NOT NULL,
                    scope TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    timestamp REAL NOT NULL,
                    name TEXT NOT NULL,
                    content_hash TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    mime_type TEXT NOT NULL,
                    content BLOB NOT NULL
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_backups_context_scope
                    ON backups(context, scope)
                """
            )

    def add_backup(
        self,
        context: str,
        scope: str,
        *,
        name: str,
        content: bytes,
        mime_type: str,
        data: Dict[str, Any] | None = None,
        timestamp: float | None = None,
    ) -> int:
        """Store a copy of a file that is about to be replaced or deleted."""
        with self.transaction() as conn:
            backup_id = conn.execute(
                """
                INSERT INTO backups(context, scope, data, timestamp, name, content_hash, size, mime_type, content)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(context),
                    str(scope),
                    json.dumps(data or {}, ensure_ascii=True, sort_keys=True),
                    time.time() if timestamp is None else timestamp,
                    name,
                    hashlib.sha256(content).hexdigest(),
                    len(content),
                    mime_type,
                    sqlite3.Binary(content),
                ),
            ).lastrowid
        LOGGER.debug("Stored backup %s of %s (context=%s, scope=%s)", backup_id, name, context, scope)
        return int(backup_id)

    def list_candidates(self, context: str, scope: str) -> List[BackupCandidate]:
        """Return fresh candidates for ``context``/``scope``, newest first."""
        rows = self._conn.execute(
            """
            SELECT * FROM backups
            WHERE context = ? AND scope = ?
            ORDER BY timestamp DESC, id DESC
            """,
            (str(context), str(scope)),
        ).fetchall()
        return [self._row_to_candidate(row) for row in rows]

    def get_candidate(self, backup_id: int) -> BackupCandidate | None:
        row = self._conn.execute("SELECT * FROM backups WHERE id = ?", (backup_id,)).fetchone()
        return self._row_to_candidate(row) if row is not None else None

    def list_backups(self, context: str | None = None, scope: str | None = None) -> List[dict]:
        """List backup metadata (without content), newest first."""
        where, params = self._selection(context, scope)
        rows = self._conn.execute(
            f"""
            SELECT id, context, scope, data, timestamp, name, content_hash, size, mime_type
            FROM backups {where}
            ORDER BY timestamp DESC, id DESC
            """,
            params,
        ).fetchall()
        backups = []
        for row in rows:
            entry = dict(row)
            entry["data"] = json.loads(row["data"]) if row["data"] else {}
            backups.append(entry)
        return backups

    def get_stats(self) -> dict:
        row = self._conn.execute(
            "SELECT COUNT(*) AS backup_count, COALESCE(SUM(size), 0) AS total_size_bytes FROM backups"
        ).fetchone()
        return {"backup_count": row["backup_count"], "total_size_bytes": row["total_size_bytes"]}

    def delete(self, backup_id: int) -> bool:
        """Delete one backup, e.g. after it was consumed as a predecessor."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM backups WHERE id = ?", (backup_id,))
        return cursor.rowcount > 0

    def delete_older_than(self, max_age: float, *, now: float | None = None) -> int:
        """Delete backups stored more than ``max_age`` seconds ago."""
        cutoff = (time.time() if now is None else now) - max_age
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM backups WHERE timestamp < ?", (cutoff,))
        LOGGER.info("Removed %d backups older than %s seconds", cursor.rowcount, max_age)
        return cursor.rowcount

    def delete_all(self, context: str | None = None, scope: str | None = None) -> int:
        """Delete every backup, or only those of the given context and/or scope."""
        where, params = self._selection(context, scope)
        with self.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM backups {where}", params)
        return cursor.rowcount

    @staticmethod
    def _selection(context: str | None, scope: str | None) -> tuple[str, tuple]:
        clauses = []
        params = []
        if context is not None:
            clauses.append("context = ?")
            params.append(str(context))
        if scope is not None:
            clauses.append("scope = ?")
            params.append(str(scope))
        where = "WHERE " + " AND ".join(clauses) if clauses else ""
        return where, tuple(params)

    @staticmethod
    def _row_to_candidate(row: sqlite3.Row) -> BackupCandidate:
        record = BackupRecord(
            id=row["id"],
            context=row["context"],
            scope=row["scope"],
            data=json.loads(row["data"]) if row["data"] else {},
            timestamp=row["timestamp"],
        )
        return BackupCandidate(
            content_hash=row["content_hash"],
            name=row["name"],
            size=row["size"],
            mime_type=row["mime_type"],
            timestamp=row["timestamp"],
            record=record,
            content=bytes(row["content"]),
        )
