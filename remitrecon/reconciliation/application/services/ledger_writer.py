"""Atomic deduction mapping and billing ledger write."""

from collections.abc import Callable
from contextlib import AbstractContextManager
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from ....exceptions import MatchAttemptError, PaymentConsumedError, StaleDeductionError
from ....storage.repository import BillingLedgerRepository, RemittanceInvoiceRepository
from ....storage.session import unit_of_work
from ....utils.config import Settings, get_settings
from ....utils.logging import get_logger
from ...domain.value_objects import (
    CaseContext,
    FailedAttempt,
    InvoiceRecord,
    LedgerKey,
    MatchOutcome,
)
from ...matchers.eligibility import ineligibility_reason, parse_amount
from ...matchers.resolvers import EagerCaseContextResolver, ICaseContextResolver

logger = get_logger(__name__)

UnitOfWorkFactory = Callable[[], AbstractContextManager[Session]]


def compute_billable_amount(
    amount: Decimal, rate: Decimal | None, precision: int = 4
) -> Decimal | None:
    """Raw amount times the vendor rate, rounded half-up to ``precision`` places.

    Returns None when the vendor has no rate.
    """
    if rate is None:
        return None
    quantum = Decimal(1).scaleb(-precision)
    return (amount * Decimal(str(rate))).quantize(quantum, rounding=ROUND_HALF_UP)


class LedgerWriter:
    """Commit a payment/deduction match as one unit of work.

    Inside the unit the deduction is re-read and re-validated, marked as
    consumed by the payment, and a billing ledger entry is inserted unless
    one already exists for the payment's idempotence key. Any failure rolls
    the whole unit back and is reported on the returned outcome; nothing is
    raised to the caller.
    """

    def __init__(
        self,
        resolver: ICaseContextResolver,
        settings: Settings | None = None,
        unit_factory: UnitOfWorkFactory = unit_of_work,
    ):
        settings = settings or get_settings()
        self.resolver = resolver
        # Rows re-read inside the unit carry their case and vendor
        self._current_resolver = EagerCaseContextResolver()
        self.key_source = settings.key_source
        self.created_by = settings.created_by
        self.precision = settings.billable_precision
        self._unit_factory = unit_factory

    def attempt_match(self, payment: InvoiceRecord, deduction: InvoiceRecord) -> MatchOutcome:
        """Try to map ``deduction`` to ``payment``.

        Returns:
            A truthy outcome when the unit committed. Ineligible pairs return a
            falsy outcome without opening a unit; rolled back units return a
            falsy outcome carrying the failure.
        """
        reason = ineligibility_reason(payment, deduction, self.resolver.resolve(deduction))
        if reason is not None:
            logger.debug(
                "pair_ineligible",
                payment_id=payment.id,
                deduction_id=deduction.id,
                reason=reason,
            )
            return MatchOutcome(payment_id=payment.id, deduction_id=deduction.id, matched=False)

        try:
            with self._unit_factory() as db:
                outcome = self._map_in_unit(db, payment, deduction)
        except Exception as e:
            error = e if isinstance(e, MatchAttemptError) else MatchAttemptError(
                f"Error mapping payment {payment.id} to deduction {deduction.id}",
                payment_id=payment.id,
                deduction_id=deduction.id,
                original_error=e,
            )
            logger.error(
                "match_attempt_failed",
                payment_id=payment.id,
                deduction_id=deduction.id,
                error=str(error),
                error_type=type(error).__name__,
            )
            failure = FailedAttempt(
                payment_id=payment.id,
                deduction_id=deduction.id,
                error=str(error),
                error_type=type(error).__name__,
            )
            return MatchOutcome(
                payment_id=payment.id,
                deduction_id=deduction.id,
                matched=False,
                failure=failure,
            )

        logger.info(
            "payment_mapped",
            payment_id=payment.id,
            deduction_id=deduction.id,
            ledger_entry_id=outcome.ledger_entry_id,
            ledger_created=outcome.ledger_created,
        )
        return outcome

    def _map_in_unit(
        self, db: Session, payment: InvoiceRecord, deduction: InvoiceRecord
    ) -> MatchOutcome:
        invoices = RemittanceInvoiceRepository(db)

        current = invoices.get_deduction(deduction.id, for_update=True)
        if current is None:
            raise StaleDeductionError(
                "Deduction no longer exists", payment_id=payment.id, deduction_id=deduction.id
            )
        if current.is_mapped:
            raise StaleDeductionError(
                "Deduction already mapped",
                payment_id=payment.id,
                deduction_id=deduction.id,
                context={"mapped_to": current.payment_remittance_id},
            )
        if invoices.is_payment_consumed(payment.id):
            raise PaymentConsumedError(
                "Payment already consumed by another deduction",
                payment_id=payment.id,
                deduction_id=deduction.id,
            )

        context = self._current_resolver.resolve(current)
        reason = ineligibility_reason(payment, current, context)
        if reason is not None or context is None:
            raise StaleDeductionError(
                "Deduction no longer eligible",
                payment_id=payment.id,
                deduction_id=deduction.id,
                context={"reason": reason},
            )

        logger.debug(
            "processing_pair",
            payment_invoice=payment.invoice_number,
            payment_amount=str(payment.invoice_amount),
            deduction_invoice=current.invoice_number,
            deduction_amount=str(current.invoice_amount),
        )

        if not invoices.mark_deduction_mapped(current.id, payment.id):
            raise StaleDeductionError(
                "Deduction was mapped concurrently",
                payment_id=payment.id,
                deduction_id=deduction.id,
            )

        return self._record_ledger_entry(db, payment, current, context)

    def _record_ledger_entry(
        self,
        db: Session,
        payment: InvoiceRecord,
        deduction: InvoiceRecord,
        context: CaseContext,
    ) -> MatchOutcome:
        ledger = BillingLedgerRepository(db)
        key = LedgerKey.for_payment(payment, context.organization_id, self.key_source)

        existing = ledger.find_by_key(key)
        if existing is not None:
            logger.info(
                "billing_ledger_exists",
                ledger_id=existing.id,
                payment_invoice=payment.invoice_number,
            )
            return MatchOutcome(
                payment_id=payment.id,
                deduction_id=deduction.id,
                matched=True,
                ledger_entry_id=existing.id,
                ledger_created=False,
            )

        amount = parse_amount(payment.invoice_amount)
        billable_amount = compute_billable_amount(amount, context.rate, self.precision)
        if billable_amount is None:
            logger.warning("vendor_rate_missing", vendor_id=context.vendor_id)

        entry = ledger.create(
            key,
            amount=amount,
            billable_amount=billable_amount,
            currency_code=payment.invoice_currency,
            description=f"Billing for {payment.invoice_number}",
            case_id=str(context.case_id),
            created_by=self.created_by,
        )
        logger.info(
            "billing_ledger_created",
            ledger_id=entry.id,
            payment_invoice=payment.invoice_number,
            billable_amount=str(billable_amount) if billable_amount is not None else None,
        )
        return MatchOutcome(
            payment_id=payment.id,
            deduction_id=deduction.id,
            matched=True,
            ledger_entry_id=entry.id,
            ledger_created=True,
        )
