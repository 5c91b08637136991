"""LLM-based invoice field extraction using pydantic-ai."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError
from pydantic_ai import Agent

from invoice_inbox.config import get_llm_model, get_openai_api_key
from invoice_inbox.errors import ExtractionDecodeError
from invoice_inbox.models import ExtractedInvoice

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are an expert accounting system. Extract the following invoice data from \
the provided raw text (often a messy CSV export or the text of a PDF) and \
return it EXACTLY as a JSON object with NO markdown wrapping and NO extra text.

Required fields (if a value is missing, make a reasonable guess or use an \
empty string):
- invoiceId: The invoice number (e.g. "Inv-006", "Dok. nr. 12")
- vendorName: The company issuing the invoice
- amount: The total amount, digits only, with a dot as decimal separator
- currency: ISO 4217 currency code, 3 letters (usually EUR)
- dateCreated: The issue date in DD-MM-YYYY format
- dueDate: The payment due date in DD-MM-YYYY format\
"""

_OPENING_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_CLOSING_FENCE_RE = re.compile(r"\s*```$")


def create_extraction_agent() -> Agent[None, str]:
    """Create a pydantic-ai Agent configured for invoice field extraction."""
    # Ensure API key is available (fail fast)
    get_openai_api_key()

    model_name = get_llm_model()
    return Agent(
        f"openai:{model_name}",
        system_prompt=_SYSTEM_PROMPT,
        model_settings={"temperature": 0.1},
    )


def extract_invoice(
    raw_text: str,
    *,
    agent: Agent[None, str] | None = None,
) -> ExtractedInvoice | None:
    """Extract the invoice fields from raw attachment text.

    Returns None when the service answers with anything other than a JSON
    object; the record is discarded rather than retried.
    Accepts an optional agent for dependency injection in tests.
    """
    if agent is None:
        agent = create_extraction_agent()

    result: Any = agent.run_sync(_build_prompt(raw_text))
    try:
        return decode_invoice(str(result.output))
    except ExtractionDecodeError:
        logger.warning("Discarding unparseable extraction response", exc_info=True)
        return None


def decode_invoice(response: str) -> ExtractedInvoice:
    """Decode an extraction response into an ExtractedInvoice.

    Raises ExtractionDecodeError unless the (unfenced) text is a JSON object.
    """
    cleaned = strip_code_fences(response)
    try:
        return ExtractedInvoice.model_validate_json(cleaned)
    except ValidationError as exc:
        msg = f"Extraction response is not an invoice object: {cleaned[:200]!r}"
        raise ExtractionDecodeError(msg) from exc


def strip_code_fences(response: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = response.strip()
    text = _OPENING_FENCE_RE.sub("", text)
    text = _CLOSING_FENCE_RE.sub("", text)
    return text.strip()


def _build_prompt(raw_text: str) -> str:
    """Build the user prompt from attachment text."""
    body = raw_text.strip() or "(no text content)"
    return f"Raw Data:\n{body}"
