"""Domain and extraction models for invoice ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass
class Attachment:
    """An email attachment."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class InboundMessage:
    """An unread message fetched from the mailbox."""

    seq_id: str
    message_id: str
    subject: str
    sender: str
    date: datetime
    attachments: list[Attachment] = field(default_factory=list)


class ExtractedInvoice(BaseModel):
    """The six invoice fields returned by the extraction service.

    Field names on the wire are camelCase. Every value is kept as text;
    an empty string means the field is unknown.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    invoice_id: str = Field(default="", alias="invoiceId")
    vendor_name: str = Field(default="", alias="vendorName")
    amount: str = ""
    currency: str = ""
    date_created: str = Field(default="", alias="dateCreated")
    due_date: str = Field(default="", alias="dueDate")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, int | float | Decimal):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


class InvoiceStatus(StrEnum):
    """Display status, derived from the due date and the paid marker."""

    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class Invoice(BaseModel):
    """Invoice record as read back from the shared table."""

    id: str
    vendor: str
    amount: Decimal
    currency: str
    date_created: date
    due_date: date
    status: InvoiceStatus


class Company(BaseModel):
    """A company whose invoice table can be listed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    csv_url: str = Field(default="", alias="csvUrl")
    receiving_email: str | None = Field(default=None, alias="receivingEmail")
