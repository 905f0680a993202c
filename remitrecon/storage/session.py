"""Database session management with context manager pattern.

Two shapes of session are used by a reconciliation run:

    # Read session for the fetch phase (no writes, closed afterwards)
    with db_session() as db:
        payments = RemittanceInvoiceRepository(db).fetch_unmapped_payments("USD")

    # Atomic unit of work for one payment/deduction pair
    with unit_of_work() as db:
        RemittanceInvoiceRepository(db).mark_deduction_mapped(9, 1)
        BillingLedgerRepository(db).create(...)
    # committed here; any exception inside rolled everything back
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from remitrecon.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions with automatic cleanup.

    Yields:
        Session: SQLAlchemy session

    Raises:
        RuntimeError: If database not initialized
        Exception: Any exception from within the context (after rollback)

    Note:
        - Session is automatically rolled back on exception
        - Session is automatically closed on exit
        - You must call db.commit() to persist changes
    """
    from remitrecon.storage.database.base import get_session

    db = get_session()
    try:
        logger.debug("db_session_created", session_id=id(db))
        yield db
    except Exception as e:
        logger.error(
            "db_session_error_rollback",
            error=str(e),
            error_type=type(e).__name__,
            session_id=id(db),
        )
        db.rollback()
        raise
    finally:
        logger.debug("db_session_closed", session_id=id(db))
        db.close()


@contextmanager
def unit_of_work() -> Generator[Session, None, None]:
    """Run a group of writes atomically.

    Commits when the block exits normally. Any exception raised inside the
    block, or by the commit itself, rolls back every write made in it and is
    re-raised to the caller.

    Yields:
        Session: SQLAlchemy session dedicated to this unit
    """
    from remitrecon.storage.database.base import get_session

    db = get_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.warning(
            "unit_of_work_rolled_back",
            error=str(e),
            error_type=type(e).__name__,
            session_id=id(db),
        )
        db.rollback()
        raise
    finally:
        db.close()
