"""Configuration via environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum

from dotenv import load_dotenv

load_dotenv()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DeliveryMode(StrEnum):
    """When a message is marked read relative to its processing."""

    AT_MOST_ONCE = "at-most-once"
    AT_LEAST_ONCE = "at-least-once"


@dataclass(frozen=True)
class ImapConfig:
    """IMAP connection configuration."""

    host: str
    username: str
    password: str
    port: int = 993
    folder: str = "INBOX"
    use_ssl: bool = True
    timeout: float = 30.0
    delivery: DeliveryMode = DeliveryMode.AT_MOST_ONCE


@dataclass(frozen=True)
class SheetsConfig:
    """Google Sheets sink configuration."""

    spreadsheet_id: str
    value_range: str = "GT Invoices!A:F"
    credentials_file: str = "google-credentials.json"


@dataclass(frozen=True)
class RowConfig:
    """Formatting rules for appended invoice rows."""

    default_currency: str = "EUR"
    date_format: str = "%d-%m-%Y"


def _missing(*names: str) -> list[str]:
    return [name for name in names if not os.environ.get(name)]


def _get_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_imap_config() -> ImapConfig:
    """Build IMAP configuration from environment variables.

    Required: IMAP_HOST, IMAP_USERNAME, IMAP_PASSWORD
    Optional: IMAP_PORT (default 993), IMAP_FOLDER (default INBOX),
    IMAP_TLS (default true), IMAP_TIMEOUT (default 30 seconds),
    INGEST_DELIVERY (default at-most-once)
    """
    missing = _missing("IMAP_HOST", "IMAP_USERNAME", "IMAP_PASSWORD")
    if missing:
        msg = f"Required environment variables not set: {', '.join(missing)}"
        raise ValueError(msg)

    port = int(os.environ.get("IMAP_PORT", "993"))
    folder = os.environ.get("IMAP_FOLDER", "INBOX")
    timeout = float(os.environ.get("IMAP_TIMEOUT", "30"))

    delivery_str = os.environ.get("INGEST_DELIVERY", DeliveryMode.AT_MOST_ONCE.value)
    try:
        delivery = DeliveryMode(delivery_str.strip().lower())
    except ValueError:
        choices = ", ".join(mode.value for mode in DeliveryMode)
        msg = f"INGEST_DELIVERY must be one of: {choices}"
        raise ValueError(msg) from None

    return ImapConfig(
        host=os.environ["IMAP_HOST"],
        username=os.environ["IMAP_USERNAME"],
        password=os.environ["IMAP_PASSWORD"],
        port=port,
        folder=folder,
        use_ssl=_get_bool("IMAP_TLS", default=True),
        timeout=timeout,
        delivery=delivery,
    )


def get_sheets_config() -> SheetsConfig:
    """Build Google Sheets configuration from environment variables.

    Required: GOOGLE_SPREADSHEET_ID
    Optional: GOOGLE_SHEETS_RANGE, GOOGLE_CREDENTIALS_FILE
    """
    spreadsheet_id = os.environ.get("GOOGLE_SPREADSHEET_ID")
    if not spreadsheet_id:
        msg = "GOOGLE_SPREADSHEET_ID environment variable is required"
        raise ValueError(msg)

    return SheetsConfig(
        spreadsheet_id=spreadsheet_id,
        value_range=os.environ.get("GOOGLE_SHEETS_RANGE", "GT Invoices!A:F"),
        credentials_file=os.environ.get(
            "GOOGLE_CREDENTIALS_FILE", "google-credentials.json"
        ),
    )


def get_row_config() -> RowConfig:
    """Return the row formatting rules (DEFAULT_CURRENCY, ROW_DATE_FORMAT)."""
    currency = os.environ.get("DEFAULT_CURRENCY", "EUR").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        msg = "DEFAULT_CURRENCY must be a 3-letter currency code"
        raise ValueError(msg)
    return RowConfig(
        default_currency=currency,
        date_format=os.environ.get("ROW_DATE_FORMAT", "%d-%m-%Y"),
    )


def get_openai_api_key() -> str:
    """Return the OPENAI_API_KEY from the environment."""
    key = os.environ.get("OPENAI_API_KEY")
    if not key:
        msg = "OPENAI_API_KEY environment variable is required"
        raise ValueError(msg)
    return key


def get_llm_model() -> str:
    """Return the LLM model identifier.

    Defaults to gpt-4o-mini.
    """
    return os.environ.get("LLM_MODEL", "gpt-4o-mini")


def get_poll_interval() -> float:
    """Return the number of seconds between ingestion cycle starts."""
    interval = float(os.environ.get("POLL_INTERVAL_SECONDS", "60"))
    if interval <= 0:
        msg = "POLL_INTERVAL_SECONDS must be greater than zero"
        raise ValueError(msg)
    return interval


def get_health_port() -> int:
    """Return the port for the liveness endpoint (PORT, default 3000)."""
    return int(os.environ.get("PORT", "3000"))


def get_log_level() -> str:
    """Return the root log level name (LOG_LEVEL, default INFO).

    Raises ValueError for any other level name.
    """
    level = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
    if level not in LOG_LEVELS:
        msg = f"LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}"
        raise ValueError(msg)
    return level
