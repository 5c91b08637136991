"""Company list for the invoice ledger reader."""

from __future__ import annotations

import json
import logging
import os

from pydantic import TypeAdapter, ValidationError

from invoice_inbox.models import Company

logger = logging.getLogger(__name__)

DEMO_COMPANY = Company(id="demo-company", name="Demo Company", csv_url="")

_COMPANY_LIST = TypeAdapter(list[Company])


def load_companies() -> list[Company]:
    """Return the configured companies.

    Reads COMPANIES_JSON (a JSON array of {id, name, csvUrl, receivingEmail}).
    Falls back to a single company for INVOICES_CSV_URL, then to a demo
    company whose empty table locator means sample data.
    """
    raw = os.environ.get("COMPANIES_JSON")
    if raw:
        try:
            companies = _COMPANY_LIST.validate_json(raw)
        except ValidationError:
            logger.error("COMPANIES_JSON is not a valid company list", exc_info=True)
        else:
            if companies:
                return companies
            logger.warning("COMPANIES_JSON lists no companies, using defaults")

    csv_url = os.environ.get("INVOICES_CSV_URL")
    if csv_url:
        return [Company(id="main-company", name="Main Company", csv_url=csv_url)]

    return [DEMO_COMPANY]


def find_company(company_id: str | None, companies: list[Company] | None = None) -> Company:
    """Return the company with ``company_id``, or the first one if None.

    Raises KeyError for an unknown id or an empty company list.
    """
    if companies is None:
        companies = load_companies()
    if company_id is None:
        if not companies:
            msg = "No companies configured"
            raise KeyError(msg)
        return companies[0]
    for company in companies:
        if company.id == company_id:
            return company
    raise KeyError(company_id)


def dump_companies(companies: list[Company]) -> str:
    """Serialize companies in the COMPANIES_JSON wire format."""
    return json.dumps(
        [c.model_dump(by_alias=True, exclude_none=True) for c in companies],
        ensure_ascii=False,
    )
