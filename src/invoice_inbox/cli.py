"""CLI entry point for invoice-inbox."""

from __future__ import annotations

import functools
import logging

import click

from invoice_inbox.adapters.imap import ImapMailbox
from invoice_inbox.companies import dump_companies, find_company, load_companies
from invoice_inbox.config import (
    get_health_port,
    get_imap_config,
    get_log_level,
    get_poll_interval,
    get_row_config,
    get_sheets_config,
)
from invoice_inbox.errors import LedgerFetchError
from invoice_inbox.extraction import create_extraction_agent, extract_invoice
from invoice_inbox.health import start_health_server
from invoice_inbox.ingest import IngestionCycle
from invoice_inbox.ledger import (
    SORT_FIELDS,
    fetch_invoices,
    filter_invoices,
    sample_invoices,
    sort_invoices,
    summarize,
)
from invoice_inbox.models import InvoiceStatus
from invoice_inbox.scheduler import CycleScheduler
from invoice_inbox.sheets import SheetsSink


@click.group()
def cli() -> None:
    """Invoice Inbox: email attachments to a shared invoice sheet."""
    try:
        level = get_log_level()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_cycle() -> IngestionCycle:
    """Construct the mailbox, extraction and sheet clients once and wire them."""
    try:
        imap_config = get_imap_config()
        sheets_config = get_sheets_config()
        row_config = get_row_config()
        agent = create_extraction_agent()
        sink = SheetsSink.from_config(sheets_config)
    except (ValueError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc

    return IngestionCycle(
        functools.partial(ImapMailbox, imap_config),
        functools.partial(extract_invoice, agent=agent),
        sink,
        row_config=row_config,
    )


@cli.command()
def run() -> None:
    """Poll the inbox on a fixed interval and serve the liveness endpoint."""
    cycle = build_cycle()
    try:
        interval = get_poll_interval()
        port = get_health_port()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    start_health_server(port)
    click.echo(f"Invoice processor started, checking every {interval:g} seconds.")
    scheduler = CycleScheduler(cycle.run, interval)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        click.echo("Stopped.")


@cli.command()
def ingest() -> None:
    """Run a single ingestion cycle."""
    report = build_cycle().run()
    click.echo(report.summary())
    if report.aborted:
        raise SystemExit(1)


@cli.command()
@click.option("--company", "company_id", default=None, help="Company id (default: first).")
@click.option("--search", default="", help="Match vendor or invoice id.")
@click.option(
    "--status",
    type=click.Choice([s.value for s in InvoiceStatus], case_sensitive=False),
    default=None,
)
@click.option("--sort", "sort_field", type=click.Choice(SORT_FIELDS), default="due_date")
@click.option("--desc", is_flag=True, help="Sort descending.")
@click.option(
    "--on-error",
    type=click.Choice(["sample", "empty"]),
    default="sample",
    show_default=True,
    help="What to show when the table cannot be fetched.",
)
def invoices(
    company_id: str | None,
    search: str,
    status: str | None,
    sort_field: str,
    desc: bool,
    on_error: str,
) -> None:
    """List a company's invoices."""
    try:
        company = find_company(company_id)
    except KeyError:
        raise click.ClickException(f"Unknown company: {company_id}") from None

    try:
        items = fetch_invoices(company)
    except LedgerFetchError as exc:
        click.echo(f"Error: {exc}", err=True)
        items = sample_invoices() if on_error == "sample" else []

    wanted = InvoiceStatus(status) if status is not None else None
    items = sort_invoices(
        filter_invoices(items, search=search, status=wanted), sort_field, descending=desc
    )

    for inv in items:
        click.echo(
            f"{inv.id:<16} {inv.vendor:<28} {inv.amount:>12,.2f} {inv.currency:<4} "
            f"{inv.date_created.isoformat()} {inv.due_date.isoformat()} {inv.status.value}"
        )
    summary = summarize(items)
    click.echo(
        f"{summary.total} invoices, {summary.overdue} overdue, "
        f"total {summary.total_amount:,.2f}"
    )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as COMPANIES_JSON.")
def companies(as_json: bool) -> None:
    """Show the configured companies."""
    items = load_companies()
    if as_json:
        click.echo(dump_companies(items))
        return
    for company in items:
        source = company.csv_url or "(sample data)"
        click.echo(f"{company.id}\t{company.name}\t{source}")
