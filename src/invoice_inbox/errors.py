"""Exception hierarchy for the ingestion cycle and invoice ledger."""

from __future__ import annotations


class InvoiceInboxError(Exception):
    """Base class for invoice-inbox errors."""


class MailboxConnectionError(InvoiceInboxError):
    """The mail server was unreachable or rejected the credentials."""


class AttachmentExtractionError(InvoiceInboxError):
    """An attachment's text could not be read."""


class ExtractionDecodeError(InvoiceInboxError):
    """The extraction service returned output that is not an invoice object."""


class AppendError(InvoiceInboxError):
    """The sheet rejected an appended row."""


class LedgerFetchError(InvoiceInboxError):
    """The invoice table export could not be downloaded."""
