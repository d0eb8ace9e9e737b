"""Run the command line ``diff`` tool and analyze its report per page."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from changeloglib.config import DEFAULT_DIFF_PATH
from changeloglib.diff.pages import DEFAULT_MAX_CHANGE_RATIO, DiffReport, analyze
from changeloglib.ingestion.text_extractor import extract_text

LOGGER = logging.getLogger(__name__)


class DiffUnavailableError(RuntimeError):
    """The line-diff tool is missing or failed, so no diff analysis is possible."""


def is_diff_installed(diff_path: str = DEFAULT_DIFF_PATH) -> bool:
    """Check whether ``diff_path`` points to a working diff executable."""
    try:
        result = subprocess.run(
            [diff_path, "-v"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        LOGGER.debug("diff not available at %s: %s", diff_path, exc)
        return False
    return result.returncode == 0


def run_line_diff(path_a: Path, path_b: Path, *, diff_path: str = DEFAULT_DIFF_PATH) -> str:
    """Return the normal-format diff of two text files.

    Whitespace changes and blank lines are ignored (``-w -B``).
    """
    try:
        result = subprocess.run(
            [diff_path, "-w", "-B", str(path_a), str(path_b)],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise DiffUnavailableError(f"Unable to run {diff_path}: {exc}") from exc

    # Exit status 1 only means the files differ
    if result.returncode not in (0, 1):
        raise DiffUnavailableError(
            f"{diff_path} exited with status {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout


def compare_documents(
    old_content: bytes,
    old_mime_type: str,
    new_content: bytes,
    new_mime_type: str,
    *,
    diff_path: str = DEFAULT_DIFF_PATH,
    max_change_ratio: float = DEFAULT_MAX_CHANGE_RATIO,
) -> Optional[DiffReport]:
    """Extract both documents, diff them and attribute the changes to pages.

    Returns None when either document cannot be converted to text.
    """
    old_text = extract_text(old_content, old_mime_type)
    new_text = extract_text(new_content, new_mime_type)
    if old_text is None or new_text is None:
        LOGGER.info("Diff analysis skipped: text extraction not applicable")
        return None

    with tempfile.TemporaryDirectory(prefix="changeloglib-") as tmp:
        old_path = Path(tmp) / "old.txt"
        new_path = Path(tmp) / "new.txt"
        old_path.write_text(old_text, encoding="utf-8", newline="")
        new_path.write_text(new_text, encoding="utf-8", newline="")
        diff_output = run_line_diff(old_path, new_path, diff_path=diff_path)

    report = analyze(old_text, new_text, diff_output, max_change_ratio=max_change_ratio)
    LOGGER.debug(
        "Changed lines: %d (ratio %.3f), pages: %s",
        report.changed_lines,
        report.change_ratio,
        report.summary() or "-",
    )
    return report
