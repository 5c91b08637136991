"""Ingestion cycle: unread mail to appended invoice rows."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from invoice_inbox.attachments import extract_text, is_invoice_candidate
from invoice_inbox.errors import (
    AppendError,
    AttachmentExtractionError,
    MailboxConnectionError,
)
from invoice_inbox.sheets import build_row

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from invoice_inbox.adapters.base import Mailbox
    from invoice_inbox.config import RowConfig
    from invoice_inbox.models import Attachment, ExtractedInvoice, InboundMessage
    from invoice_inbox.sheets import RowValue

logger = logging.getLogger(__name__)


class RowSink(Protocol):
    """Anything that can append a row to the shared invoice table."""

    def append_row(self, row: list[RowValue]) -> dict[str, Any]: ...


class CycleState(StrEnum):
    """Stage an ingestion cycle is in; IDLE between cycles."""

    IDLE = "idle"
    CONNECTING = "connecting"
    LISTING = "listing"
    EXTRACTING = "extracting"
    CLASSIFYING = "classifying"
    TEXT_EXTRACT = "text-extract"
    FIELD_EXTRACT = "field-extract"
    APPEND = "append"
    CLOSING = "closing"


@dataclass
class CycleReport:
    """Counters for one ingestion cycle."""

    messages: int = 0
    candidates: int = 0
    skipped: int = 0
    rows_appended: int = 0
    aborted: bool = False
    failures: Counter[str] = field(default_factory=Counter)

    def summary(self) -> str:
        failures = ", ".join(f"{k}={v}" for k, v in sorted(self.failures.items()))
        return (
            f"messages={self.messages} candidates={self.candidates} "
            f"skipped={self.skipped} rows={self.rows_appended} "
            f"failures=[{failures}]{' aborted' if self.aborted else ''}"
        )


class IngestionCycle:
    """One poll of the mailbox, run strictly sequentially.

    Every stage is injected: ``mailbox_factory`` opens a mailbox session,
    ``extractor`` turns attachment text into fields (or None) and ``sink``
    appends rows. Failures are contained per attachment, except mailbox
    failures which end the cycle.
    """

    def __init__(
        self,
        mailbox_factory: Callable[[], Mailbox],
        extractor: Callable[[str], ExtractedInvoice | None],
        sink: RowSink,
        *,
        row_config: RowConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._mailbox_factory = mailbox_factory
        self._extractor = extractor
        self._sink = sink
        self._row_config = row_config
        self._clock = clock
        self.state = CycleState.IDLE

    def run(self) -> CycleReport:
        """Process every unread message and return the cycle's counters."""
        report = CycleReport()
        self._enter(CycleState.CONNECTING)
        try:
            with self._mailbox_factory() as mailbox:
                self._enter(CycleState.LISTING)
                for message in mailbox.fetch_unseen():
                    report.messages += 1
                    settled = self._process_message(message, report)
                    if settled and not mailbox.marks_seen_on_fetch:
                        mailbox.mark_seen(message.seq_id)
                self._enter(CycleState.CLOSING)
        except MailboxConnectionError:
            logger.error("Mailbox failure, cycle aborted", exc_info=True)
            report.aborted = True
            report.failures["connection"] += 1
        finally:
            self._enter(CycleState.IDLE)

        logger.info("Cycle complete: %s", report.summary())
        return report

    def _process_message(self, message: InboundMessage, report: CycleReport) -> bool:
        """Handle one message; return False if it should be retried later."""
        self._enter(CycleState.EXTRACTING)
        logger.info(
            "Processing email %s %s subject %r",
            message.seq_id,
            message.message_id or "(no Message-ID)",
            message.subject,
        )

        if not message.attachments:
            logger.info("No attachments in email %s, skipping", message.seq_id)
            return True

        self._enter(CycleState.CLASSIFYING)
        settled = True
        for att in message.attachments:
            if not is_invoice_candidate(att):
                logger.debug("Skipping attachment %s (%s)", att.filename, att.content_type)
                report.skipped += 1
                continue

            report.candidates += 1
            logger.info("Found invoice attachment %s", att.filename)
            try:
                settled = self._process_attachment(att, report) and settled
            except Exception:
                logger.exception("Failed to process attachment %s", att.filename)
                report.failures["unexpected"] += 1
                settled = False
        return settled

    def _process_attachment(self, att: Attachment, report: CycleReport) -> bool:
        self._enter(CycleState.TEXT_EXTRACT)
        try:
            text = extract_text(att)
        except AttachmentExtractionError:
            logger.warning("Could not read attachment %s", att.filename, exc_info=True)
            report.failures["extraction"] += 1
            return True

        self._enter(CycleState.FIELD_EXTRACT)
        invoice = self._extractor(text)
        if invoice is None:
            logger.warning("No invoice data extracted from %s", att.filename)
            report.failures["decode"] += 1
            return True

        self._enter(CycleState.APPEND)
        now = self._clock() if self._clock is not None else None
        row = build_row(invoice, row_config=self._row_config, now=now)
        try:
            self._sink.append_row(row)
        except AppendError:
            logger.error("Row for %s was not written", att.filename, exc_info=True)
            report.failures["append"] += 1
            return False

        report.rows_appended += 1
        logger.info("Appended invoice %s from %s", row[0], att.filename)
        return True

    def _enter(self, state: CycleState) -> None:
        logger.debug("Cycle state %s -> %s", self.state, state)
        self.state = state
