"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from invoice_inbox.config import DeliveryMode, ImapConfig
from invoice_inbox.models import Attachment, InboundMessage

if TYPE_CHECKING:
    from collections.abc import Callable

ACME_INVOICE_TEXT = (
    "Invoice #77, Acme Ltd, total 200.00 EUR, issued 01-01-2024, due 15-01-2024"
)


def build_pdf(text: str) -> bytes:
    """Build a one-page PDF whose text layer contains ``text``."""
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    stream = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


@pytest.fixture
def make_pdf() -> Callable[[str], bytes]:
    """Provide the PDF builder."""
    return build_pdf


@pytest.fixture
def imap_config() -> ImapConfig:
    """Provide a test IMAP configuration."""
    return ImapConfig(
        host="imap.example.com",
        username="test@example.com",
        password="secret",  # pragma: allowlist secret
        port=993,
        folder="INBOX",
    )


@pytest.fixture
def peek_imap_config(imap_config: ImapConfig) -> ImapConfig:
    """Provide an IMAP configuration that marks messages read after processing."""
    return ImapConfig(
        host=imap_config.host,
        username=imap_config.username,
        password=imap_config.password,
        delivery=DeliveryMode.AT_LEAST_ONCE,
    )


@pytest.fixture
def acme_pdf_attachment() -> Attachment:
    """Provide the Acme invoice as a text-layer PDF attachment."""
    return Attachment(
        filename="invoice-77.pdf",
        content_type="application/pdf",
        data=build_pdf(ACME_INVOICE_TEXT),
    )


@pytest.fixture
def sample_message(acme_pdf_attachment: Attachment) -> InboundMessage:
    """Provide an unread message carrying the Acme invoice."""
    return InboundMessage(
        seq_id="1",
        message_id="<inv-77@acme.example>",
        subject="Invoice 77",
        sender="billing@acme.example",
        date=datetime(2024, 1, 1, 9, 0, 0, tzinfo=UTC),
        attachments=[acme_pdf_attachment],
    )
