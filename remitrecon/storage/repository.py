"""Repositories over the remittance, case, vendor and billing ledger tables.

Every read returns typed domain records rather than ORM rows, so the match
engine never holds a live session object.
"""

from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, joinedload, selectinload

from ..exceptions import DatabaseIntegrityError, wrap_exception
from ..reconciliation.domain.value_objects import (
    CaseReference,
    InvoiceRecord,
    LedgerEntry,
    LedgerKey,
    VendorProfile,
)
from ..utils.logging import get_logger
from .database.models import BillingLedger, RemittanceInvoice, Vendor, VendorCase

logger = get_logger(__name__)


class RemittanceInvoiceRepository:
    """Queries and the single allowed mutation on remittance lines."""

    def __init__(self, session: Session):
        self.session = session

    def _unmapped(self, currency: str | None):
        stmt = select(RemittanceInvoice).where(RemittanceInvoice.payment_remittance_id.is_(None))
        if currency:
            stmt = stmt.where(RemittanceInvoice.invoice_currency == currency)
        return stmt

    def fetch_unmapped_payments(self, currency: str | None = None) -> list[InvoiceRecord]:
        """Positive, unmapped lines not yet referenced by any mapped deduction.

        Ordered by id, which is the order payments are processed in.
        """
        consumer = aliased(RemittanceInvoice)
        already_consumed = (
            select(consumer.id).where(consumer.payment_remittance_id == RemittanceInvoice.id).exists()
        )
        stmt = (
            self._unmapped(currency)
            .where(RemittanceInvoice.invoice_amount > 0)
            .where(~already_consumed)
            .order_by(RemittanceInvoice.id)
        )
        return [InvoiceRecord.from_model(row) for row in self.session.scalars(stmt)]

    def fetch_unmapped_deductions(
        self, currency: str | None = None, eager: bool = False
    ) -> list[InvoiceRecord]:
        """Negative, unmapped lines ordered by id.

        Args:
            currency: Restrict to one currency (None = all)
            eager: Join each deduction's case and owning vendor
        """
        stmt = (
            self._unmapped(currency)
            .where(RemittanceInvoice.invoice_amount < 0)
            .order_by(RemittanceInvoice.id)
        )
        if eager:
            stmt = stmt.options(
                joinedload(RemittanceInvoice.vendor_case).joinedload(VendorCase.vendor)
            )
        rows = self.session.scalars(stmt).unique()
        return [InvoiceRecord.from_model(row, include_case=eager) for row in rows]

    def get_deduction(self, deduction_id: int, for_update: bool = False) -> InvoiceRecord | None:
        """Re-read one deduction (with its case and vendor) bypassing the identity map."""
        stmt = (
            select(RemittanceInvoice)
            .where(RemittanceInvoice.id == deduction_id)
            .options(selectinload(RemittanceInvoice.vendor_case).selectinload(VendorCase.vendor))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = self.session.scalars(stmt).first()
        if row is None:
            return None
        return InvoiceRecord.from_model(row, include_case=True)

    def mark_deduction_mapped(self, deduction_id: int, payment_id: int) -> bool:
        """Point a still-unmapped deduction at its payment.

        The update is conditional on ``payment_remittance_id IS NULL``, so of
        two racing writers only one changes the row.

        Returns:
            True if the row was updated, False if it was missing or already mapped
        """
        result = self.session.execute(
            update(RemittanceInvoice)
            .where(
                RemittanceInvoice.id == deduction_id,
                RemittanceInvoice.payment_remittance_id.is_(None),
                RemittanceInvoice.invoice_amount < 0,
            )
            .values(payment_remittance_id=payment_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def is_payment_consumed(self, payment_id: int) -> bool:
        """Whether any deduction already points at this payment."""
        stmt = select(RemittanceInvoice.id).where(
            RemittanceInvoice.payment_remittance_id == payment_id
        )
        return self.session.scalar(select(stmt.exists())) or False


class VendorCaseRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_ids(self, ids: Sequence[int]) -> list[CaseReference]:
        if not ids:
            return []
        stmt = select(VendorCase).where(VendorCase.id.in_(ids)).order_by(VendorCase.id)
        return [CaseReference.from_model(row) for row in self.session.scalars(stmt)]


class VendorRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_ids(self, ids: Sequence[int]) -> list[VendorProfile]:
        if not ids:
            return []
        stmt = select(Vendor).where(Vendor.id.in_(ids)).order_by(Vendor.id)
        return [VendorProfile.from_model(row) for row in self.session.scalars(stmt)]


class BillingLedgerRepository:
    """Idempotent access to billing ledger entries."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_key(self, key: LedgerKey) -> LedgerEntry | None:
        stmt = select(BillingLedger).filter_by(**key.as_filter())
        row = self.session.scalars(stmt).first()
        return LedgerEntry.from_model(row) if row is not None else None

    def create(
        self,
        key: LedgerKey,
        *,
        amount: Decimal,
        billable_amount: Decimal | None,
        currency_code: str | None,
        description: str,
        case_id: str | None,
        created_by: str,
    ) -> LedgerEntry:
        """Insert a ledger entry and flush it so the id is known.

        Raises:
            DatabaseIntegrityError: If an entry with the same key already exists
        """
        row = BillingLedger(
            **key.as_filter(),
            amount=amount,
            billable_amount=billable_amount,
            currency_code=currency_code,
            description=description,
            case_id=case_id,
            created_by=created_by,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise wrap_exception(
                e,
                "Billing ledger entry already exists",
                exception_class=DatabaseIntegrityError,
                billing_key=key.billing_key,
                billing_key2=key.billing_key2,
            ) from e

        logger.debug("billing_ledger_flushed", ledger_id=row.id, billing_key=key.billing_key)
        return LedgerEntry.from_model(row)
