"""Google Sheets row sink."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from invoice_inbox.config import RowConfig
from invoice_inbox.errors import AppendError
from invoice_inbox.normalization import UNKNOWN_VENDOR, format_date, parse_amount

if TYPE_CHECKING:
    from invoice_inbox.config import SheetsConfig
    from invoice_inbox.models import ExtractedInvoice

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

RowValue = str | float


def build_row(
    invoice: ExtractedInvoice,
    *,
    row_config: RowConfig | None = None,
    now: datetime | None = None,
) -> list[RowValue]:
    """Lay out an extracted invoice as one sheet row.

    Column order: id, vendor, amount, currency, date created, due date.
    The status column that follows is left for readers to derive.
    """
    if row_config is None:
        row_config = RowConfig()
    if now is None:
        now = datetime.now(tz=UTC)

    invoice_id = invoice.invoice_id or f"Auto-{int(now.timestamp() * 1000)}"
    amount: RowValue = float(parse_amount(invoice.amount)) if invoice.amount else ""

    return [
        invoice_id,
        invoice.vendor_name or UNKNOWN_VENDOR,
        amount,
        invoice.currency.upper() or row_config.default_currency,
        format_date(invoice.date_created, row_config.date_format),
        format_date(invoice.due_date, row_config.date_format),
    ]


class SheetsSink:
    """Append-only writer for the shared invoice sheet."""

    def __init__(
        self,
        sheets_client: Any,
        spreadsheet_id: str,
        value_range: str = "GT Invoices!A:F",
    ) -> None:
        self._sheets = sheets_client
        self.spreadsheet_id = spreadsheet_id
        self.value_range = value_range

    @classmethod
    def from_config(cls, config: SheetsConfig) -> SheetsSink:
        """Build a sink authenticated with the configured service account."""
        credentials = service_account.Credentials.from_service_account_file(
            config.credentials_file, scopes=[SHEETS_SCOPE]
        )
        sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return cls(sheets, config.spreadsheet_id, config.value_range)

    def append_row(self, row: list[RowValue]) -> dict[str, Any]:
        """Append a single row below the existing data.

        Returns the ``updates`` section of the API response. Raises
        AppendError if the sheet rejects the write.
        """
        logger.info("Appending row to %s: %s", self.value_range, row)
        try:
            response = (
                self._sheets.spreadsheets()
                .values()
                .append(
                    spreadsheetId=self.spreadsheet_id,
                    range=self.value_range,
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body={"values": [row]},
                )
                .execute()
            )
        except (HttpError, GoogleAuthError, OSError) as exc:
            msg = f"Sheets append to {self.value_range} failed"
            raise AppendError(msg) from exc

        updates: dict[str, Any] = response.get("updates", {})
        logger.debug("Sheets updated range %s", updates.get("updatedRange"))
        return updates
