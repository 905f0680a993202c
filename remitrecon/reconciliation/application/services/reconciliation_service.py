"""One complete reconciliation pass: connect, load, index, match, report."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ....core.events.base import GlobalEventBus
from ....exceptions import DatabaseConnectionError, DatabaseError, wrap_exception
from ....storage.database.base import check_connection, init_db
from ....storage.repository import (
    RemittanceInvoiceRepository,
    VendorCaseRepository,
    VendorRepository,
)
from ....storage.session import db_session
from ....utils.config import Settings
from ....utils.datetime import utc_now
from ....utils.logging import LogPerformance, get_logger, set_correlation_id
from ...domain.value_objects import InvoiceRecord, RunReport
from ...matchers.index import DeductionIndex, build_deduction_index
from ...matchers.resolvers import (
    BatchCaseContextResolver,
    EagerCaseContextResolver,
    ICaseContextResolver,
)
from ..events import ReconciliationStartedEvent
from .ledger_writer import LedgerWriter
from .match_engine import MatchEngine

logger = get_logger(__name__)


@dataclass
class LoadedRecords:
    """Everything the fetch phase produces for the match engine."""

    payments: list[InvoiceRecord]
    deductions: list[InvoiceRecord]
    index: DeductionIndex
    resolver: ICaseContextResolver


def connect(settings: Settings) -> None:
    """Initialize the engine and prove a session can be opened.

    Raises:
        DatabaseConnectionError: If the database is unreachable or the URL unusable
    """
    try:
        init_db(settings.resolved_database_url(), create_tables=settings.create_tables)
    except (ArgumentError, ImportError, SQLAlchemyError) as e:
        raise wrap_exception(
            e,
            "Cannot initialize database engine",
            exception_class=DatabaseConnectionError,
        ) from e
    check_connection()
    logger.info("database_connected")


class ReconciliationService:
    """Run the match engine once over the current unmapped backlog."""

    def __init__(self, settings: Settings, event_bus: GlobalEventBus | None = None):
        self.settings = settings
        self.event_bus = event_bus

    def load(self) -> LoadedRecords:
        """Fetch unmapped payments and deductions and prepare case resolution.

        Raises:
            DatabaseError: If any fetch query fails
        """
        currency = self.settings.currency_filter
        eager = self.settings.case_resolution == "eager"

        try:
            with LogPerformance("fetch_unmapped_records", logger), db_session() as db:
                invoices = RemittanceInvoiceRepository(db)
                payments = invoices.fetch_unmapped_payments(currency)
                logger.info("unmapped_payments_found", count=len(payments))
                deductions = invoices.fetch_unmapped_deductions(currency, eager=eager)
                logger.info("unmapped_deductions_found", count=len(deductions))

                resolver: ICaseContextResolver
                if eager:
                    resolver = EagerCaseContextResolver()
                else:
                    resolver = BatchCaseContextResolver.prefetch(
                        deductions, VendorCaseRepository(db), VendorRepository(db)
                    )
        except SQLAlchemyError as e:
            raise wrap_exception(
                e,
                "Failed to load unmapped remittance records",
                exception_class=DatabaseError,
                currency=currency,
            ) from e

        return LoadedRecords(
            payments=payments,
            deductions=deductions,
            index=build_deduction_index(deductions),
            resolver=resolver,
        )

    def run(self, started_at: datetime | None = None) -> RunReport:
        """Load the backlog and match it. Returns the finalized report.

        The report's duration counts from ``started_at`` (default: now), so
        callers that connect first can include the connection time.
        """
        started_at = started_at or utc_now()
        correlation_id = set_correlation_id()
        logger.info(
            "reconciliation_started",
            run_id=correlation_id,
            currency=self.settings.currency_filter,
            strategy=self.settings.case_resolution,
        )

        loaded = self.load()
        if self.event_bus is not None:
            self.event_bus.publish(
                ReconciliationStartedEvent(
                    payments=len(loaded.payments),
                    deductions=len(loaded.deductions),
                    currency=self.settings.currency_filter,
                    strategy=self.settings.case_resolution,
                )
            )

        writer = LedgerWriter(loaded.resolver, self.settings)
        engine = MatchEngine(writer, self.event_bus)
        return engine.run(loaded.payments, loaded.index, started_at=started_at)
