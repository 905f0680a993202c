"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests:
- in-memory SQLite databases (standalone engine, or the global one used by
  ``unit_of_work``)
- builders for payment and deduction records
- seeding helpers for vendors, cases and remittance lines
"""

import os
from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from remitrecon.reconciliation.domain.value_objects import (
    CaseContext,
    CaseReference,
    InvoiceRecord,
    VendorProfile,
)
from remitrecon.storage.database import base as db_base
from remitrecon.storage.database.base import Base
from remitrecon.storage.database.models import RemittanceInvoice, Vendor, VendorCase
from remitrecon.utils.config import Settings

PAYMENT_DATE = date(2024, 2, 1)


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create a database session for testing.

    Each test gets a fresh session with automatic rollback.
    """
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def global_db(tmp_path) -> Generator[str, None, None]:
    """Initialize the module-level engine used by ``db_session()``/``unit_of_work()``.

    A file database gives every session its own connection, like a server would.
    """
    url = f"sqlite:///{tmp_path / 'remitrecon.db'}"
    db_base.init_db(url, create_tables=True)
    yield url
    db_base.dispose_db()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        currency="USD",
        case_resolution="batch",
        key_source="RemittanceInvoice",
        created_by="auto-mapper-script",
        billable_precision=4,
    )


# ============================================================================
# In-memory record builders
# ============================================================================


def _record(defaults: dict[str, Any], overrides: dict[str, Any]) -> InvoiceRecord:
    values = {**defaults, **overrides}
    return InvoiceRecord(**values)


@pytest.fixture
def make_payment() -> Callable[..., InvoiceRecord]:
    """Build a shortage-claim payment for vendor 1 / INV100 unless overridden."""

    def _make(**overrides: Any) -> InvoiceRecord:
        defaults = {
            "id": 1,
            "vendor_id": 1,
            "root_invoice_number": "INV100",
            "sub_invoice_number": "SC-7",
            "invoice_amount": Decimal("25.00"),
            "invoice_currency": "USD",
            "invoice_date": PAYMENT_DATE,
            "invoice_number": "INV100SC7",
            "payment_number": "PAY-1",
        }
        return _record(defaults, overrides)

    return _make


@pytest.fixture
def make_deduction() -> Callable[..., InvoiceRecord]:
    """Build a shortage-claim deduction matching ``make_payment()`` unless overridden."""

    def _make(**overrides: Any) -> InvoiceRecord:
        defaults = {
            "id": 9,
            "vendor_id": 1,
            "root_invoice_number": "INV100",
            "sub_invoice_number": "SC-3",
            "invoice_amount": Decimal("-25.00"),
            "invoice_currency": "USD",
            "invoice_date": date(2024, 1, 15),
            "invoice_number": "INV100SC3",
            "reversal_for_vendor_case_id": 50,
        }
        return _record(defaults, overrides)

    return _make


@pytest.fixture
def case_context() -> CaseContext:
    return CaseContext(case_id=50, vendor_id=1, organization_id=700, rate=Decimal("0.15"))


@pytest.fixture
def vendor_profile() -> VendorProfile:
    return VendorProfile(id=1, organization_id=700, rate=Decimal("0.15"))


@pytest.fixture
def valid_case(vendor_profile: VendorProfile) -> CaseReference:
    return CaseReference(id=50, vendor_id=1, is_valid_case=True, vendor=vendor_profile)


# ============================================================================
# Database seeding helpers
# ============================================================================


class Seeder:
    """Insert vendors, cases and remittance lines through one session."""

    def __init__(self, session: Session):
        self.session = session

    def vendor(self, organization_id: int | None = 700, rate: str | None = "0.15", **kw) -> Vendor:
        vendor = Vendor(
            name=kw.pop("name", "Acme Supplies"),
            organization_id=organization_id,
            rate=Decimal(rate) if rate is not None else None,
            **kw,
        )
        self.session.add(vendor)
        self.session.flush()
        return vendor

    def case(self, vendor: Vendor | None, is_valid_case: bool | None = True, **kw) -> VendorCase:
        case = VendorCase(
            vendor_id=vendor.id if vendor is not None else None,
            is_valid_case=is_valid_case,
            **kw,
        )
        self.session.add(case)
        self.session.flush()
        return case

    def invoice(self, vendor: Vendor, amount: str, **kw) -> RemittanceInvoice:
        kw.setdefault("root_invoice_number", "INV100")
        kw.setdefault("invoice_currency", "USD")
        row = RemittanceInvoice(vendor_id=vendor.id, invoice_amount=Decimal(amount), **kw)
        self.session.add(row)
        self.session.flush()
        return row

    def payment(self, vendor: Vendor, amount: str = "25.00", **kw) -> RemittanceInvoice:
        kw.setdefault("sub_invoice_number", "SC-7")
        kw.setdefault("invoice_date", PAYMENT_DATE)
        kw.setdefault("invoice_number", "INV100SC7")
        kw.setdefault("payment_number", "PAY-1")
        return self.invoice(vendor, amount, **kw)

    def deduction(
        self, vendor: Vendor, case: VendorCase | None, amount: str = "-25.00", **kw
    ) -> RemittanceInvoice:
        kw.setdefault("sub_invoice_number", "SC-3")
        kw.setdefault("invoice_date", date(2024, 1, 15))
        kw.setdefault("invoice_number", "INV100SC3")
        return self.invoice(
            vendor,
            amount,
            reversal_for_vendor_case_id=case.id if case is not None else None,
            **kw,
        )

    def commit(self) -> None:
        self.session.commit()


@pytest.fixture
def seeder_class() -> type[Seeder]:
    return Seeder


@pytest.fixture
def seeder(db_session: Session) -> Seeder:
    """Seeder over the standalone test engine."""
    return Seeder(db_session)


@pytest.fixture
def global_seeder(global_db) -> Generator[Seeder, None, None]:
    """Seeder over the global engine; commit before running writers against it."""
    session = db_base.get_session()
    yield Seeder(session)
    session.close()


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
