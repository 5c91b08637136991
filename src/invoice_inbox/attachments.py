"""Attachment classification and text extraction."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from invoice_inbox.errors import AttachmentExtractionError

if TYPE_CHECKING:
    from invoice_inbox.models import Attachment

logger = logging.getLogger(__name__)

CANDIDATE_MIME_MARKERS = ("csv", "excel", "pdf")
CANDIDATE_SUFFIXES = (".csv", ".xlsx", ".xls", ".pdf")


def is_invoice_candidate(att: Attachment) -> bool:
    """Return True if the attachment may hold an invoice (CSV, Excel or PDF)."""
    mime = att.content_type.lower()
    filename = att.filename.lower()
    return any(marker in mime for marker in CANDIDATE_MIME_MARKERS) or filename.endswith(
        CANDIDATE_SUFFIXES
    )


def is_pdf(att: Attachment) -> bool:
    """Return True if the attachment is declared or named as a PDF."""
    return "pdf" in att.content_type.lower() or att.filename.lower().endswith(".pdf")


def extract_text(att: Attachment) -> str:
    """Return the raw text of a candidate attachment.

    PDFs yield their embedded text layer only; image-only PDFs come back
    empty. Everything else is decoded as UTF-8 as-is, so binary Excel
    files produce unreadable text.
    """
    if is_pdf(att):
        return _pdf_text(att)
    return att.data.decode("utf-8", errors="replace")


def _pdf_text(att: Attachment) -> str:
    """Concatenate the text layer of every page."""
    try:
        reader = PdfReader(io.BytesIO(att.data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, OSError) as exc:
        msg = f"Could not read PDF attachment {att.filename}"
        raise AttachmentExtractionError(msg) from exc

    text = "\n".join(pages).strip()
    if not text:
        logger.warning("PDF attachment %s has no text layer", att.filename)
    return text
