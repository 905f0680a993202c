"""Typed records and value objects for reconciliation.

The engine never touches ORM rows: the repositories convert rows into these
immutable records, and the engine's results flow back out as a ``RunReport``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ...utils.datetime import utc_now
from .enums import SkipReason

if TYPE_CHECKING:
    from ...storage.database.models import BillingLedger, RemittanceInvoice, Vendor, VendorCase


@dataclass(frozen=True)
class VendorProfile:
    """Vendor identity, owning organization and billing rate."""

    id: int
    organization_id: int | None = None
    rate: Decimal | None = None

    @classmethod
    def from_model(cls, vendor: Vendor) -> VendorProfile:
        return cls(id=vendor.id, organization_id=vendor.organization_id, rate=vendor.rate)


@dataclass(frozen=True)
class CaseReference:
    """Vendor case a deduction reverses.

    Attributes:
        id: Case identifier
        vendor_id: Owning vendor
        is_valid_case: Tri-state validity flag; None means never reviewed
        vendor: Owning vendor profile when it was loaded together with the case
    """

    id: int
    vendor_id: int | None = None
    is_valid_case: bool | None = None
    vendor: VendorProfile | None = None

    @property
    def is_reviewed(self) -> bool:
        """Whether the case carries an explicit validity decision."""
        return self.is_valid_case is not None

    @classmethod
    def from_model(cls, case: VendorCase, include_vendor: bool = False) -> CaseReference:
        vendor = None
        if include_vendor and case.vendor is not None:
            vendor = VendorProfile.from_model(case.vendor)
        return cls(
            id=case.id,
            vendor_id=case.vendor_id,
            is_valid_case=case.is_valid_case,
            vendor=vendor,
        )


@dataclass(frozen=True)
class InvoiceRecord:
    """A remittance line: payment when the amount is positive, deduction when negative.

    ``invoice_amount`` keeps whatever the store returned; comparisons go
    through ``eligibility.parse_amount``.
    """

    id: int
    vendor_id: int | None
    root_invoice_number: str | None
    sub_invoice_number: str | None
    invoice_amount: Any
    invoice_currency: str | None = None
    invoice_date: date | None = None
    invoice_number: str | None = None
    payment_number: str | None = None
    payment_remittance_id: int | None = None
    reversal_for_vendor_case_id: int | None = None
    case: CaseReference | None = None

    @property
    def is_mapped(self) -> bool:
        return self.payment_remittance_id is not None

    @classmethod
    def from_model(cls, row: RemittanceInvoice, include_case: bool = False) -> InvoiceRecord:
        case = None
        if include_case and row.vendor_case is not None:
            case = CaseReference.from_model(row.vendor_case, include_vendor=True)
        return cls(
            id=row.id,
            vendor_id=row.vendor_id,
            root_invoice_number=row.root_invoice_number,
            sub_invoice_number=row.sub_invoice_number,
            invoice_amount=row.invoice_amount,
            invoice_currency=row.invoice_currency,
            invoice_date=row.invoice_date,
            invoice_number=row.invoice_number,
            payment_number=row.payment_number,
            payment_remittance_id=row.payment_remittance_id,
            reversal_for_vendor_case_id=row.reversal_for_vendor_case_id,
            case=case,
        )


@dataclass(frozen=True)
class CaseContext:
    """Everything a deduction's case resolves to, ready for the ledger write."""

    case_id: int
    vendor_id: int
    organization_id: int
    rate: Decimal | None = None


@dataclass(frozen=True)
class LedgerKey:
    """Idempotence key of a billing ledger entry."""

    vendor_id: int | None
    organization_id: int
    billing_key: str
    billing_key2: str
    key_source: str

    @classmethod
    def for_payment(
        cls, payment: InvoiceRecord, organization_id: int, key_source: str
    ) -> LedgerKey:
        return cls(
            vendor_id=payment.vendor_id,
            organization_id=organization_id,
            billing_key=str(payment.payment_number or ""),
            billing_key2=str(payment.invoice_number or ""),
            key_source=key_source,
        )

    def as_filter(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "organization_id": self.organization_id,
            "billing_key": self.billing_key,
            "billing_key2": self.billing_key2,
            "key_source": self.key_source,
        }


@dataclass(frozen=True)
class LedgerEntry:
    """Billing entry created once per successful match."""

    id: int
    key: LedgerKey
    amount: Decimal
    billable_amount: Decimal | None
    currency_code: str | None
    description: str | None
    case_id: str | None
    date_created: datetime
    created_by: str | None

    @classmethod
    def from_model(cls, row: BillingLedger) -> LedgerEntry:
        return cls(
            id=row.id,
            key=LedgerKey(
                vendor_id=row.vendor_id,
                organization_id=row.organization_id,
                billing_key=row.billing_key,
                billing_key2=row.billing_key2,
                key_source=row.key_source,
            ),
            amount=row.amount,
            billable_amount=row.billable_amount,
            currency_code=row.currency_code,
            description=row.description,
            case_id=row.case_id,
            date_created=row.date_created,
            created_by=row.created_by,
        )


@dataclass(frozen=True)
class FailedAttempt:
    """A payment/deduction pair whose unit of work rolled back."""

    payment_id: int
    deduction_id: int
    error: str
    error_type: str


@dataclass(frozen=True)
class MatchOutcome:
    """Result of one LedgerWriter attempt. Truthy when the pair was committed."""

    payment_id: int
    deduction_id: int
    matched: bool
    ledger_entry_id: int | None = None
    ledger_created: bool = False
    failure: FailedAttempt | None = None

    def __bool__(self) -> bool:
        return self.matched


@dataclass
class RunReport:
    """Counters and diagnostics for a single reconciliation run.

    Mutable while the engine runs; ``finalize()`` stamps the end time and
    makes every recording method raise afterwards.
    """

    payments_seen: int = 0
    payments_matched: int = 0
    ledger_entries_created: int = 0
    ledger_entries_existing: int = 0
    skipped: Counter[SkipReason] = field(default_factory=Counter)
    ambiguous_keys: list[str] = field(default_factory=list)
    failed_attempts: list[FailedAttempt] = field(default_factory=list)
    matches: list[tuple[int, int]] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None

    def _ensure_open(self) -> None:
        if self.finished_at is not None:
            raise RuntimeError("RunReport is read-only once the run has completed")

    def record_seen(self) -> None:
        self._ensure_open()
        self.payments_seen += 1

    def record_skip(self, reason: SkipReason) -> None:
        self._ensure_open()
        self.skipped[reason] += 1

    def record_ambiguous(self, composite_key: str) -> None:
        self._ensure_open()
        self.skipped[SkipReason.AMBIGUOUS_GROUP] += 1
        if composite_key not in self.ambiguous_keys:
            self.ambiguous_keys.append(composite_key)

    def record_failure(self, failure: FailedAttempt) -> None:
        self._ensure_open()
        self.failed_attempts.append(failure)

    def record_match(self, outcome: MatchOutcome) -> None:
        self._ensure_open()
        self.payments_matched += 1
        self.matches.append((outcome.payment_id, outcome.deduction_id))
        if outcome.ledger_created:
            self.ledger_entries_created += 1
        else:
            self.ledger_entries_existing += 1

    def finalize(self) -> RunReport:
        self._ensure_open()
        self.finished_at = utc_now()
        return self

    @property
    def is_final(self) -> bool:
        return self.finished_at is not None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or utc_now()
        return (end - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"Successfully mapped {self.payments_matched} payments out of "
            f"{self.payments_seen} total payments."
        )
