"""FastAPI application exposing predecessor matching and diff analysis."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from changeloglib.backup.storage import SQLiteBackupStore
from changeloglib.config import AppConfig
from changeloglib.diff.runner import DiffUnavailableError, compare_documents
from changeloglib.matching.detector import UpdateDetector
from changeloglib.models import Distribution
from changeloglib.utils.files import load_candidate, load_new_file

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="ChangelogLib API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class BackupPayload(BaseModel):
    paths: List[str]
    context: str
    scope: str
    data: Dict[str, Any] = Field(default_factory=dict)
    db: Path | None = None


class MatchPayload(BaseModel):
    paths: List[str]
    context: str
    scope: str
    data: Dict[str, Any] = Field(default_factory=dict)
    candidates: List[str] = Field(default_factory=list)
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    ensure_mime_type: bool = True
    delete_found: bool = False
    db: Path | None = None


class DiffPayload(BaseModel):
    old_path: str
    new_path: str
    max_change_ratio: float = Field(default=0.5, ge=0.0)


def _resolve_db_path(db: Path | None) -> Path:
    if db is None:
        db = getattr(app.state, "db_path", None)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _validate_file(raw_path: str) -> Path:
    clean_path = raw_path.strip().replace("\r", "").replace("\n", "")
    if not clean_path:
        raise HTTPException(status_code=400, detail="Empty path")
    if "\0" in clean_path:
        raise HTTPException(status_code=400, detail="Invalid path: contains null byte")

    path = Path(clean_path).expanduser()
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {clean_path}")
    return path


def _serialize_distribution(distribution: Distribution) -> Dict[str, Any]:
    mappings = []
    for mapping in distribution.mappings:
        predecessor = mapping.predecessor
        mappings.append(
            {
                "file": mapping.new_file.name,
                "path": str(mapping.new_file.path) if mapping.new_file.path else None,
                "predecessor": predecessor.backup.name if predecessor else None,
                "backup_id": predecessor.backup.backup_id if predecessor else None,
                "similarity": mapping.similarity,
                "changed": mapping.has_changed(),
            }
        )
    return {"mappings": mappings, "similarity": distribution.similarity}


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.post("/backups")
async def create_backups(payload: BackupPayload) -> dict[str, Any]:
    if not payload.paths:
        raise HTTPException(status_code=400, detail="No path provided")
    paths = [_validate_file(raw) for raw in payload.paths]

    resolved_db = _resolve_db_path(payload.db)
    _ensure_db_parent(resolved_db)
    store = SQLiteBackupStore(resolved_db)
    try:
        detector = UpdateDetector(store)
        ids = detector.backup_files(
            [load_new_file(path) for path in paths], payload.context, payload.scope, payload.data
        )
    finally:
        store.close()
    return {"status": "ok", "ids": ids}


@app.get("/backups")
async def list_backups(
    context: str | None = None, scope: str | None = None, db: Path | None = None
) -> dict[str, Any]:
    """List stored backups, optionally restricted to one context and scope."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return {"backups": [], "stats": {"backup_count": 0, "total_size_bytes": 0}}

    store = SQLiteBackupStore(resolved_db)
    try:
        backups = store.list_backups(context, scope)
        stats = store.get_stats()
    finally:
        store.close()
    return {"backups": backups, "stats": stats}


@app.delete("/backups/cleanup")
async def cleanup_backups(max_age: int | None = None, db: Path | None = None) -> dict[str, Any]:
    """Remove backups older than ``max_age`` seconds."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail="Database not found")

    store = SQLiteBackupStore(resolved_db)
    try:
        removed_count = store.delete_older_than(
            max_age if max_age is not None else AppConfig().backup_max_age
        )
    finally:
        store.close()
    return {"status": "ok", "removed_count": removed_count}


def _run_match_job(payload: MatchPayload, resolved_db: Path) -> Dict[str, Any]:
    new_files = [load_new_file(_validate_file(raw), payload.data) for raw in payload.paths]
    further = [load_candidate(_validate_file(raw)) for raw in payload.candidates]

    store = SQLiteBackupStore(resolved_db) if resolved_db.exists() else None
    try:
        detector = UpdateDetector(
            store,
            ensure_mime_type=payload.ensure_mime_type,
            min_similarity=payload.min_similarity,
        )
        distribution = detector.detect(new_files, payload.context, payload.scope, further)
        result = _serialize_distribution(distribution)
        if payload.delete_found:
            result["deleted"] = sum(
                detector.delete_found_predecessor(mapping) for mapping in distribution.mappings
            )
    finally:
        if store is not None:
            store.close()
    return result


@app.post("/match")
async def match_files(payload: MatchPayload) -> dict[str, Any]:
    if not payload.paths:
        raise HTTPException(status_code=400, detail="No path provided")

    max_batch_size = AppConfig().max_batch_size
    if len(payload.paths) > max_batch_size:
        raise HTTPException(
            status_code=400,
            detail=f"At most {max_batch_size} files can be matched at once",
        )

    resolved_db = _resolve_db_path(payload.db)
    result = await asyncio.to_thread(_run_match_job, payload, resolved_db)
    return {"status": "ok", **result}


@app.post("/diff")
async def diff_files(payload: DiffPayload) -> dict[str, Any]:
    old_file = load_new_file(_validate_file(payload.old_path))
    new_file = load_new_file(_validate_file(payload.new_path))

    try:
        report = await asyncio.to_thread(
            compare_documents,
            old_file.content or b"",
            old_file.mime_type,
            new_file.content or b"",
            new_file.mime_type,
            diff_path=AppConfig().diff_path,
            max_change_ratio=payload.max_change_ratio,
        )
    except DiffUnavailableError as exc:
        LOGGER.warning("Diff analysis unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Diff analysis unavailable") from exc

    if report is None:
        raise HTTPException(
            status_code=415, detail="Diff analysis not applicable for these file types"
        )
    return {"status": "ok", "report": report.to_dict(), "summary": report.summary()}
