"""Main CLI entry point for RemitRecon."""

import sys
from enum import Enum
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from remitrecon import __version__
from remitrecon.core.events import BaseEvent, GlobalEventBus, register_default_listeners
from remitrecon.exceptions import RemitReconError
from remitrecon.reconciliation.application.events import (
    DeductionGroupAmbiguousEvent,
    MatchAttemptFailedEvent,
    PaymentMatchedEvent,
    ReconciliationStartedEvent,
)
from remitrecon.reconciliation.application.services import ReconciliationService, connect
from remitrecon.reconciliation.domain.enums import SkipReason
from remitrecon.reconciliation.domain.value_objects import RunReport
from remitrecon.reconciliation.metrics import register_metrics_listener, start_metrics_server
from remitrecon.storage.database.base import dispose_db
from remitrecon.utils.config import get_settings
from remitrecon.utils.datetime import utc_now
from remitrecon.utils.logging import configure_logging, get_logger

app = typer.Typer(
    name="remitrecon",
    help="🔁 Map remittance payments to outstanding deductions",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()
logger = get_logger(__name__)


class Strategy(str, Enum):
    """Case resolution strategies selectable from the command line."""

    batch = "batch"
    eager = "eager"


class ConsoleReporter:
    """Print a human-readable trace of reconciliation events."""

    def __init__(self, out: Console):
        self.out = out

    def __call__(self, event: BaseEvent) -> None:
        if isinstance(event, ReconciliationStartedEvent):
            self.out.print(f"Found {event.payments} unmapped payments.")
            self.out.print(f"Found {event.deductions} unmapped deductions.")
        elif isinstance(event, PaymentMatchedEvent):
            ledger = "created" if event.ledger_created else "already existed"
            self.out.print(
                f"[green]✓[/] Mapped payment {event.payment_id} to deduction "
                f"{event.deduction_id} (ledger entry {event.ledger_entry_id} {ledger})"
            )
        elif isinstance(event, DeductionGroupAmbiguousEvent):
            self.out.print(
                f"[yellow]⚠ Duplicate deduction amounts under {event.composite_key} "
                f"(payment {event.payment_id}); manual review required[/]"
            )
        elif isinstance(event, MatchAttemptFailedEvent):
            self.out.print(
                f"[red]✗ Error mapping payment {event.payment_id} to deduction "
                f"{event.deduction_id}: {event.error}[/]"
            )


def _print_summary(report: RunReport) -> None:
    table = Table(title="📊 Reconciliation Summary", show_header=True)
    table.add_column("Metric", style="cyan", width=28)
    table.add_column("Count", justify="right", style="bold")

    table.add_row("Payments seen", str(report.payments_seen))
    table.add_row("✅ Payments matched", f"[green]{report.payments_matched}[/]")
    table.add_row("🧾 Ledger entries created", str(report.ledger_entries_created))
    table.add_row("🔁 Ledger entries existing", str(report.ledger_entries_existing))
    for reason in SkipReason:
        count = report.skipped.get(reason, 0)
        if count:
            table.add_row(f"⏭  Skipped: {reason.value}", f"[yellow]{count}[/]")
    table.add_row("❌ Failed attempts", f"[red]{len(report.failed_attempts)}[/]")
    table.add_row("━" * 28, "━" * 10)
    table.add_row("⏱  Duration (s)", f"{report.duration_seconds:.3f}")

    console.print(table)
    console.print(report.summary())

    if report.ambiguous_keys:
        console.print("\n[yellow]Groups needing manual review:[/]")
        for key in report.ambiguous_keys:
            console.print(f"  • {key}")


@app.command()
def reconcile(
    currency: Optional[str] = typer.Option(
        None, "--currency", "-c", help="Currency to reconcile (default from CURRENCY)"
    ),
    strategy: Optional[Strategy] = typer.Option(
        None, "--strategy", "-s", help="Case resolution: batch prefetch or eager join"
    ),
    database_url: Optional[str] = typer.Option(
        None, "--database-url", help="SQLAlchemy URL (default from DATABASE_URL/DB_*)"
    ),
):
    """🔍 Map unmapped payments to deductions and write billing ledger entries.

    Examples:
        # Reconcile using environment configuration
        remitrecon reconcile

        # Reconcile EUR remittances resolving cases with joined loading
        remitrecon reconcile --currency EUR --strategy eager
    """
    started_at = utc_now()
    try:
        settings = get_settings()
        overrides: dict = {}
        if currency is not None:
            overrides["currency"] = currency.strip().upper()
        if strategy is not None:
            overrides["case_resolution"] = strategy.value
        if database_url is not None:
            overrides["database_url"] = database_url
        if overrides:
            settings = settings.model_copy(update=overrides)

        configure_logging(settings.log_level, settings.json_logs, settings.dev_mode)

        event_bus = register_default_listeners(GlobalEventBus())
        register_metrics_listener(event_bus)
        event_bus.subscribe(BaseEvent, ConsoleReporter(console), priority=10)
        if settings.prometheus_enabled:
            start_metrics_server(settings.metrics_port)

        connect(settings)
        report = ReconciliationService(settings, event_bus).run(started_at=started_at)
    except RemitReconError as e:
        logger.error("reconciliation_aborted", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]✗ Error during reconciliation: {e}[/]")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("reconciliation_crashed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]✗ Unexpected error during reconciliation: {e}[/]")
        raise typer.Exit(1)
    finally:
        dispose_db()

    console.print("Auto-mapping complete.")
    _print_summary(report)
    console.print("[green]✓ Reconciliation process completed successfully[/]")


@app.command()
def version():
    """Show the installed version."""
    console.print(f"remitrecon {__version__}")


def main() -> None:
    """Run ``reconcile`` when called without arguments, otherwise dispatch normally."""
    app(args=sys.argv[1:] or ["reconcile"])


if __name__ == "__main__":
    main()
