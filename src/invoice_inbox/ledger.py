"""Read side of the invoice sheet: CSV export to typed invoice records."""

from __future__ import annotations

import csv
import io
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import requests

from invoice_inbox.errors import LedgerFetchError
from invoice_inbox.models import Invoice, InvoiceStatus
from invoice_inbox.normalization import (
    UNKNOWN_VENDOR,
    derive_status,
    is_paid_marker,
    parse_amount,
    parse_date,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from invoice_inbox.models import Company

logger = logging.getLogger(__name__)

# Normalized header name -> Invoice field
HEADER_FIELDS = {
    "id": "id",
    "vendor": "vendor",
    "amount": "amount",
    "currency": "currency",
    "datecreated": "date_created",
    "duedate": "due_date",
    "status": "status",
}
SORT_FIELDS = ("id", "vendor", "amount", "currency", "date_created", "due_date", "status")

_HEADER_NOISE_RE = re.compile(r"[\s_-]")

# (id, vendor, amount, currency, created, due, paid)
_SAMPLE_ROWS = (
    ("INV-2023-001", "Acme Corp", "12500.00", "USD", "2023-10-01", "2023-10-15", True),
    ("INV-2023-002", "Global Tech Supplies", "8400.50", "USD", "2023-10-10", "2023-10-24", False),
    ("INV-2023-003", "Creative Media Ltd", "3200.00", "USD", "2023-09-15", "2023-09-30", False),
    ("INV-2023-004", "Office Essentials", "450.75", "USD", "2023-10-12", "2023-10-26", False),
    ("INV-2023-005", "ServerHost Inc", "2100.00", "USD", "2023-08-01", "2023-08-15", True),
)


@dataclass(frozen=True)
class LedgerSummary:
    """Headline numbers for a list of invoices."""

    total: int
    overdue: int
    total_amount: Decimal


def fetch_invoices(
    company: Company,
    *,
    session: requests.Session | None = None,
    today: date | None = None,
    timeout: float = 15.0,
) -> list[Invoice]:
    """Download and parse a company's invoice table.

    A company without a table locator gets the sample invoices.
    Raises LedgerFetchError if the export cannot be downloaded.
    """
    if not company.csv_url:
        logger.info("No invoice table configured for %s, using sample data", company.id)
        return sample_invoices(today=today)

    http: Any = session or requests
    try:
        response = http.get(company.csv_url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        msg = f"Could not download invoices for {company.id}"
        raise LedgerFetchError(msg) from exc

    text = response.content.decode("utf-8-sig", errors="replace")
    return parse_invoices(text, today=today)


def parse_invoices(
    text: str,
    *,
    today: date | None = None,
    default_currency: str = "USD",
) -> list[Invoice]:
    """Parse CSV text with a header row into invoices.

    Header names are matched case-insensitively, ignoring spaces, "_" and
    "-". Unknown columns are ignored; blank rows are skipped.
    """
    if today is None:
        today = date.today()

    reader = csv.DictReader(io.StringIO(text))
    columns = {
        name: HEADER_FIELDS[key]
        for name in reader.fieldnames or []
        if (key := _normalize_header(name)) in HEADER_FIELDS
    }
    if not columns:
        logger.warning("Invoice table has no recognised header columns")
        return []

    invoices: list[Invoice] = []
    for row in reader:
        values = {field: (row.get(name) or "").strip() for name, field in columns.items()}
        if not any(values.values()):
            continue
        invoices.append(_to_invoice(values, today, default_currency))
    return invoices


def _to_invoice(values: dict[str, str], today: date, default_currency: str) -> Invoice:
    due_date = parse_date(values.get("due_date"))
    return Invoice(
        id=values.get("id") or f"UNK-{uuid.uuid4().hex[:4]}",
        vendor=values.get("vendor") or UNKNOWN_VENDOR,
        amount=parse_amount(values.get("amount")),
        currency=(values.get("currency") or default_currency).upper(),
        date_created=parse_date(values.get("date_created")) or today,
        due_date=due_date or today,
        status=derive_status(due_date, today, paid=is_paid_marker(values.get("status"))),
    )


def _normalize_header(name: str | None) -> str:
    return _HEADER_NOISE_RE.sub("", name or "").lower()


def sample_invoices(*, today: date | None = None) -> list[Invoice]:
    """Return the fixed demo invoices with status derived for ``today``."""
    if today is None:
        today = date.today()
    invoices = []
    for invoice_id, vendor, amount, currency, created, due, paid in _SAMPLE_ROWS:
        due_date = date.fromisoformat(due)
        invoices.append(
            Invoice(
                id=invoice_id,
                vendor=vendor,
                amount=Decimal(amount),
                currency=currency,
                date_created=date.fromisoformat(created),
                due_date=due_date,
                status=derive_status(due_date, today, paid=paid),
            )
        )
    return invoices


def filter_invoices(
    invoices: Iterable[Invoice],
    *,
    search: str = "",
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    """Keep invoices whose vendor or id contains ``search`` and whose status matches."""
    needle = search.strip().lower()
    return [
        inv
        for inv in invoices
        if (not needle or needle in inv.vendor.lower() or needle in inv.id.lower())
        and (status is None or inv.status == status)
    ]


def sort_invoices(
    invoices: Iterable[Invoice],
    field: str = "due_date",
    *,
    descending: bool = False,
) -> list[Invoice]:
    """Sort invoices by one field; ties keep their original order."""
    if field not in SORT_FIELDS:
        msg = f"Cannot sort by {field!r}; choose one of {', '.join(SORT_FIELDS)}"
        raise ValueError(msg)
    return sorted(invoices, key=lambda inv: getattr(inv, field), reverse=descending)


def summarize(invoices: Iterable[Invoice]) -> LedgerSummary:
    """Count invoices and overdue ones, and total their amounts."""
    items = list(invoices)
    return LedgerSummary(
        total=len(items),
        overdue=sum(1 for inv in items if inv.status == InvoiceStatus.OVERDUE),
        total_amount=sum((inv.amount for inv in items), Decimal("0")),
    )
