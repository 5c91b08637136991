"""Normalization rules shared by the row producer and the ledger reader.

Amounts arrive as locale-ambiguous text ("1.234,56 EUR", "$45.00") and dates
as either ISO or day-first text. Both sides of the sheet use these helpers so
they agree on what a cell means.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from invoice_inbox.models import InvoiceStatus

_AMOUNT_NOISE_RE = re.compile(r"[^\d.,-]")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_DAY_FIRST_DATE_RE = re.compile(r"^(\d{1,2})[-./](\d{1,2})[-./](\d{4})$")

PAID_MARKERS = frozenset({"paid", "оплачен"})
UNKNOWN_VENDOR = "Unknown Vendor"


def parse_amount(text: str | None) -> Decimal:
    """Parse an amount, returning Decimal("0") for empty or invalid input.

    When both "." and "," occur, the right-most one is the decimal
    separator. A single "," on its own is a decimal separator; a separator
    repeated more than once is treated as digit grouping.
    """
    if not text:
        return Decimal("0")

    cleaned = _AMOUNT_NOISE_RE.sub("", str(text))
    negative = cleaned.startswith("-")
    cleaned = cleaned.replace("-", "")

    has_dot = "." in cleaned
    has_comma = "," in cleaned
    if has_dot and has_comma:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        if cleaned.count(",") == 1:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_dot and cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return -amount if negative else amount


def parse_date(text: str | None) -> date | None:
    """Parse ISO (YYYY-MM-DD) or day-first (DD-MM-YYYY, DD.MM.YYYY, DD/MM/YYYY) text."""
    if not text:
        return None
    value = text.strip()

    match = _ISO_DATE_RE.match(value)
    if match:
        year, month, day = match.groups()
    else:
        match = _DAY_FIRST_DATE_RE.match(value)
        if not match:
            return None
        day, month, year = match.groups()

    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def normalize_date(text: str | None) -> str:
    """Return the ISO form of a date string, or the stripped input if unparseable."""
    parsed = parse_date(text)
    if parsed is None:
        return (text or "").strip()
    return parsed.isoformat()


def format_date(text: str | None, fmt: str) -> str:
    """Render a date string with ``fmt``, or return it stripped if unparseable."""
    parsed = parse_date(text)
    if parsed is None:
        return (text or "").strip()
    return parsed.strftime(fmt)


def is_paid_marker(text: str | None) -> bool:
    """Return True if a stored status cell marks the invoice as paid."""
    return (text or "").strip().lower() in PAID_MARKERS


def derive_status(
    due_date: date | None, today: date, *, paid: bool = False
) -> InvoiceStatus:
    """Derive the display status of an invoice.

    Paid if marked paid; otherwise overdue once ``today`` is past the due
    date; otherwise pending. An unknown due date is pending.
    """
    if paid:
        return InvoiceStatus.PAID
    if due_date is not None and today > due_date:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING
