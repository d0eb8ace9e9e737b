"""Plain-text extraction for diffing.

Uses PyMuPDF (fitz) for PDF text extraction. Pages are separated by a form
feed so that line diffs can be attributed to pages afterwards.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import fitz  # PyMuPDF

from changeloglib.diff.pages import PAGE_BREAK

LOGGER = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPE = "text/plain"
SUPPORTED_MIME_TYPES = frozenset({PDF_MIME_TYPE, TEXT_MIME_TYPE})


def is_supported(mime_type: str) -> bool:
    return mime_type in SUPPORTED_MIME_TYPES


def iter_page_texts(content: bytes) -> Iterator[str]:
    """Yield the text of every page of an in-memory PDF."""
    doc = fitz.open(stream=content, filetype="pdf")
    try:
        for index in range(len(doc)):
            try:
                yield doc[index].get_text() or ""
            except Exception as exc:  # pragma: no cover
                LOGGER.warning("Failed to read page %s: %s", index, exc)
                yield ""
    finally:
        doc.close()


def _join_pages(pages: Iterator[str]) -> str:
    # Each page ends with a newline so the break starts the next page's first line
    parts = [page if page.endswith("\n") or not page else page + "\n" for page in pages]
    return PAGE_BREAK.join(parts)


def extract_text(content: bytes, mime_type: str) -> Optional[str]:
    """Convert a document into plain text with form-feed page breaks.

    Returns None when the type is not supported or the document cannot be
    read, so callers skip diff analysis instead of comparing garbage.
    """
    if mime_type == TEXT_MIME_TYPE:
        return content.decode("utf-8", errors="replace")

    if mime_type != PDF_MIME_TYPE:
        LOGGER.debug("No text extraction for MIME type %s", mime_type)
        return None

    try:
        return _join_pages(iter_page_texts(content))
    except Exception as exc:
        LOGGER.error("Failed to extract text from PDF: %s", exc)
        return None
