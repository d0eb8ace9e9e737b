"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_DIFF_PATH = "diff"


def _get_default_db_path() -> Path:
    """Get the default backup database path."""
    # When running from source, prefer local data/ if it exists
    local_db = Path("data/changeloglib.db")
    if local_db.exists():
        return local_db

    return Path.home() / "Documents" / "ChangelogLib" / "changeloglib.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    min_similarity: float = 0.5
    ensure_mime_type: bool = True
    max_change_ratio: float = 0.5
    # Seconds a backup stays eligible as predecessor before `clean` drops it
    backup_max_age: int = 60 * 60
    diff_path: str = DEFAULT_DIFF_PATH
    max_batch_size: int = 20

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if not 0.0 <= self.min_similarity <= 1.0:
            raise ValueError("min_similarity must be within [0, 1]")

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
