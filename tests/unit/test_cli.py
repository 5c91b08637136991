"""Tests for invoice_inbox.cli."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from invoice_inbox.cli import cli
from invoice_inbox.errors import LedgerFetchError
from invoice_inbox.ingest import CycleReport

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COMPANIES_JSON", raising=False)
    monkeypatch.delenv("INVOICES_CSV_URL", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


class TestInvoicesCommand:
    """Tests for `invoice-inbox invoices`."""

    def test_lists_sample_data_without_table(self) -> None:
        result = CliRunner().invoke(cli, ["invoices"])

        assert result.exit_code == 0, result.output
        assert "INV-2023-001" in result.output
        assert "5 invoices" in result.output

    def test_search_and_status(self) -> None:
        result = CliRunner().invoke(cli, ["invoices", "--search", "acme", "--status", "paid"])

        assert result.exit_code == 0, result.output
        assert "Acme Corp" in result.output
        assert "Global Tech" not in result.output
        assert "1 invoices" in result.output

    def test_unknown_company(self) -> None:
        result = CliRunner().invoke(cli, ["invoices", "--company", "nope"])

        assert result.exit_code != 0
        assert "Unknown company: nope" in result.output

    def test_empty_company_list_uses_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPANIES_JSON", "[]")

        result = CliRunner().invoke(cli, ["invoices"])

        assert result.exit_code == 0, result.output
        assert "5 invoices" in result.output

    def test_fetch_error_falls_back_to_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INVOICES_CSV_URL", "https://example.com/export.csv")
        with patch(
            "invoice_inbox.cli.fetch_invoices", side_effect=LedgerFetchError("offline")
        ):
            result = CliRunner().invoke(cli, ["invoices", "--on-error", "empty"])

        assert result.exit_code == 0
        assert "offline" in result.output
        assert "0 invoices" in result.output


class TestCompaniesCommand:
    """Tests for `invoice-inbox companies`."""

    def test_lists_demo_company(self) -> None:
        result = CliRunner().invoke(cli, ["companies"])

        assert result.exit_code == 0
        assert "demo-company" in result.output
        assert "(sample data)" in result.output

    def test_json_output(self) -> None:
        result = CliRunner().invoke(cli, ["companies", "--json"])

        assert result.exit_code == 0
        assert '"csvUrl": ""' in result.output


class TestIngestCommand:
    """Tests for `invoice-inbox ingest`."""

    def test_runs_one_cycle(self) -> None:
        cycle = MagicMock()
        cycle.run.return_value = CycleReport(messages=1, candidates=1, rows_appended=1)
        with patch("invoice_inbox.cli.build_cycle", return_value=cycle):
            result = CliRunner().invoke(cli, ["ingest"])

        assert result.exit_code == 0
        assert "rows=1" in result.output
        cycle.run.assert_called_once()

    def test_aborted_cycle_exits_nonzero(self) -> None:
        cycle = MagicMock()
        cycle.run.return_value = CycleReport(aborted=True)
        with patch("invoice_inbox.cli.build_cycle", return_value=cycle):
            result = CliRunner().invoke(cli, ["ingest"])

        assert result.exit_code == 1
        assert "aborted" in result.output

    def test_missing_configuration(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        for name in ("IMAP_HOST", "IMAP_USERNAME", "IMAP_PASSWORD"):
            monkeypatch.delenv(name, raising=False)

        result = CliRunner().invoke(cli, ["ingest"])

        assert result.exit_code != 0
        assert "IMAP_HOST" in result.output

    def test_missing_credentials_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("IMAP_HOST", "imap.example.com")
        monkeypatch.setenv("IMAP_USERNAME", "bot@example.com")
        monkeypatch.setenv("IMAP_PASSWORD", "secret")  # pragma: allowlist secret
        monkeypatch.setenv("GOOGLE_SPREADSHEET_ID", "sheet-1")
        monkeypatch.setenv("GOOGLE_CREDENTIALS_FILE", str(tmp_path / "missing.json"))
        for name in ("INGEST_DELIVERY", "DEFAULT_CURRENCY", "IMAP_PORT", "IMAP_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        with patch("invoice_inbox.cli.create_extraction_agent"):
            result = CliRunner().invoke(cli, ["ingest"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "missing.json" in result.output


class TestRunCommand:
    """Tests for `invoice-inbox run`."""

    def test_starts_health_server_and_scheduler(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "30")
        monkeypatch.setenv("PORT", "4000")
        cycle = MagicMock()
        with (
            patch("invoice_inbox.cli.build_cycle", return_value=cycle),
            patch("invoice_inbox.cli.start_health_server") as mock_health,
            patch("invoice_inbox.cli.CycleScheduler") as mock_scheduler,
        ):
            result = CliRunner().invoke(cli, ["run"])

        assert result.exit_code == 0, result.output
        mock_health.assert_called_once_with(4000)
        mock_scheduler.assert_called_once_with(cycle.run, 30.0)
        mock_scheduler.return_value.run.assert_called_once()


class TestLogLevel:
    """Tests for the LOG_LEVEL handling of the command group."""

    def test_invalid_level_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "verbose")

        result = CliRunner().invoke(cli, ["companies"])

        assert result.exit_code != 0
        assert "LOG_LEVEL must be one of" in result.output
