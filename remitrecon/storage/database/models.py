"""SQLAlchemy models for RemitRecon.

The remittance, vendor and case tables are populated upstream; this package
only ever sets ``payment_remittance_id`` on deductions and inserts billing
ledger rows.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...utils.datetime import utc_now
from .base import Base, IntPKMixin


class Vendor(IntPKMixin, Base):
    """Vendor account owning remittances and cases."""

    __tablename__ = "vendors"

    name: Mapped[str | None] = mapped_column(String(200))
    organization_id: Mapped[int | None] = mapped_column(Integer, index=True)
    # Multiplier applied to a matched amount to obtain the billable amount
    rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4))

    cases: Mapped[list[VendorCase]] = relationship(back_populates="vendor")

    def __repr__(self) -> str:
        return f"<Vendor(id={self.id}, organization_id={self.organization_id}, rate={self.rate})>"


class VendorCase(IntPKMixin, Base):
    """Case record a deduction reverses.

    ``is_valid_case`` is tri-state: NULL means the case was never reviewed.
    """

    __tablename__ = "vendor_cases"

    vendor_id: Mapped[int | None] = mapped_column(ForeignKey("vendors.id"), index=True)
    is_valid_case: Mapped[bool | None] = mapped_column(Boolean)

    vendor: Mapped[Vendor | None] = relationship(back_populates="cases")

    def __repr__(self) -> str:
        return (
            f"<VendorCase(id={self.id}, vendor_id={self.vendor_id}, "
            f"is_valid_case={self.is_valid_case})>"
        )


class RemittanceInvoice(IntPKMixin, Base):
    """Remittance line: a payment (amount > 0) or a deduction (amount < 0)."""

    __tablename__ = "remittance_invoices"
    __table_args__ = (
        Index("ix_remittance_invoices_vendor_root", "vendor_id", "root_invoice_number"),
    )

    vendor_id: Mapped[int | None] = mapped_column(ForeignKey("vendors.id"))
    payment_number: Mapped[str | None] = mapped_column(String(100))
    invoice_number: Mapped[str | None] = mapped_column(String(100))
    root_invoice_number: Mapped[str | None] = mapped_column(String(100))
    sub_invoice_number: Mapped[str | None] = mapped_column(String(100))

    # Stored with four decimals so sub-cent amounts survive the round trip
    invoice_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), index=True)
    invoice_currency: Mapped[str | None] = mapped_column(String(3))
    invoice_date: Mapped[date | None] = mapped_column(Date)

    # NULL = unmapped; set once to the payment that settles this deduction
    payment_remittance_id: Mapped[int | None] = mapped_column(
        ForeignKey("remittance_invoices.id"), index=True
    )
    reversal_for_vendor_case_id: Mapped[int | None] = mapped_column(
        ForeignKey("vendor_cases.id")
    )

    vendor_case: Mapped[VendorCase | None] = relationship(
        foreign_keys=[reversal_for_vendor_case_id]
    )

    def __repr__(self) -> str:
        return (
            f"<RemittanceInvoice(id={self.id}, "
            f"invoice_number='{self.invoice_number}', "
            f"amount={self.invoice_amount}, "
            f"payment_remittance_id={self.payment_remittance_id})>"
        )


class BillingLedger(IntPKMixin, Base):
    """Billing entry written once per matched payment.

    The unique constraint is the idempotence key: a second insert for the same
    payment fails and rolls back its unit of work.
    """

    __tablename__ = "billing_ledger"
    __table_args__ = (
        UniqueConstraint(
            "vendor_id",
            "organization_id",
            "billing_key",
            "billing_key2",
            "key_source",
            name="uq_billing_ledger_idempotence_key",
        ),
    )

    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    organization_id: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_key: Mapped[str] = mapped_column(String(100), nullable=False)
    billing_key2: Mapped[str] = mapped_column(String(100), nullable=False)
    key_source: Mapped[str] = mapped_column(String(50), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    billable_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    currency_code: Mapped[str | None] = mapped_column(String(3))
    description: Mapped[str | None] = mapped_column(Text)
    case_id: Mapped[str | None] = mapped_column(String(50))

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    created_by: Mapped[str | None] = mapped_column(String(100))

    def __repr__(self) -> str:
        return (
            f"<BillingLedger(id={self.id}, billing_key='{self.billing_key}', "
            f"billing_key2='{self.billing_key2}', amount={self.amount})>"
        )
