"""Payment-by-payment matching loop."""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime

from ....core.events.base import BaseEvent, GlobalEventBus
from ....exceptions import PaymentConsumedError, StaleDeductionError
from ....utils.logging import get_logger
from ...domain.enums import SkipReason
from ...domain.value_objects import InvoiceRecord, RunReport
from ...matchers.ambiguity import has_ambiguous_amounts
from ...matchers.eligibility import claim_type_of, is_chronologically_valid
from ...matchers.index import DeductionIndex, composite_key
from ..events import (
    DeductionGroupAmbiguousEvent,
    MatchAttemptFailedEvent,
    PaymentMatchedEvent,
    PaymentSkippedEvent,
    ReconciliationCompletedEvent,
)
from .ledger_writer import LedgerWriter

logger = get_logger(__name__)


class MatchEngine:
    """Match each payment to at most one deduction from its candidate group.

    For every payment, in input order:

    1. Payments without a claim marker are skipped.
    2. The candidate group is looked up by composite key.
    3. Groups with duplicate amounts are skipped for manual review.
    4. Candidates are tried in group order; deductions dated after the
       payment are passed over, every other candidate goes to the
       LedgerWriter, and the first committed one wins.

    A consumed deduction is dropped from its group so no later payment in
    the same run can select it.
    """

    def __init__(self, writer: LedgerWriter, event_bus: GlobalEventBus | None = None):
        self.writer = writer
        self.event_bus = event_bus

    def run(
        self,
        payments: Iterable[InvoiceRecord],
        deduction_index: Mapping[str, Sequence[InvoiceRecord]],
        started_at: datetime | None = None,
    ) -> RunReport:
        """Process every payment once and return the finalized report.

        ``deduction_index`` is copied; the caller's groups are not modified.
        ``started_at`` backdates the report to when the caller began the run.
        """
        index: DeductionIndex = {key: list(group) for key, group in deduction_index.items()}
        report = RunReport(started_at=started_at) if started_at is not None else RunReport()

        for payment in payments:
            report.record_seen()
            self._process_payment(payment, index, report)

        report.finalize()
        logger.info(
            "auto_mapping_complete",
            payments_seen=report.payments_seen,
            payments_matched=report.payments_matched,
            ambiguous_groups=len(report.ambiguous_keys),
            failed_attempts=len(report.failed_attempts),
            duration_seconds=round(report.duration_seconds, 3),
        )
        self._publish(
            ReconciliationCompletedEvent(
                payments_seen=report.payments_seen,
                payments_matched=report.payments_matched,
                ledger_entries_created=report.ledger_entries_created,
                ambiguous_groups=len(report.ambiguous_keys),
                failed_attempts=len(report.failed_attempts),
                duration_seconds=report.duration_seconds,
            )
        )
        return report

    def _process_payment(
        self, payment: InvoiceRecord, index: DeductionIndex, report: RunReport
    ) -> None:
        if claim_type_of(payment) is None:
            self._skip(payment, SkipReason.NOT_A_CLAIM, report)
            return

        key = composite_key(payment)
        group = index.get(key)
        if not group:
            self._skip(payment, SkipReason.NO_CANDIDATES, report, key)
            return

        if has_ambiguous_amounts(group):
            report.record_ambiguous(key)
            logger.warning(
                "deduction_group_ambiguous",
                payment_id=payment.id,
                composite_key=key,
                deduction_ids=[d.id for d in group],
                action="manual_review_required",
            )
            self._publish(
                DeductionGroupAmbiguousEvent(
                    payment_id=payment.id,
                    composite_key=key,
                    deduction_ids=tuple(d.id for d in group),
                )
            )
            return

        for deduction in list(group):
            if not is_chronologically_valid(payment, deduction):
                continue

            outcome = self.writer.attempt_match(payment, deduction)

            if outcome.failure is not None:
                report.record_failure(outcome.failure)
                self._publish(
                    MatchAttemptFailedEvent(
                        payment_id=payment.id,
                        deduction_id=deduction.id,
                        error=outcome.failure.error,
                        error_type=outcome.failure.error_type,
                    )
                )
                if outcome.failure.error_type == StaleDeductionError.__name__:
                    # The stored row disagrees with what was loaded; don't offer it again
                    group.remove(deduction)
                elif outcome.failure.error_type == PaymentConsumedError.__name__:
                    # Every remaining candidate would fail the same way
                    break
                continue

            if outcome:
                group.remove(deduction)
                report.record_match(outcome)
                self._publish(
                    PaymentMatchedEvent(
                        payment_id=payment.id,
                        deduction_id=deduction.id,
                        ledger_entry_id=outcome.ledger_entry_id,
                        ledger_created=outcome.ledger_created,
                        amount=str(payment.invoice_amount),
                    )
                )
                return

        self._skip(payment, SkipReason.NO_ELIGIBLE_DEDUCTION, report, key)

    def _skip(
        self,
        payment: InvoiceRecord,
        reason: SkipReason,
        report: RunReport,
        key: str | None = None,
    ) -> None:
        report.record_skip(reason)
        logger.debug("payment_skipped", payment_id=payment.id, reason=reason.value)
        self._publish(PaymentSkippedEvent(payment_id=payment.id, reason=reason.value, composite_key=key))

    def _publish(self, event: BaseEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
