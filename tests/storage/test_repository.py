"""Tests for the remittance, case, vendor and billing ledger repositories."""

from decimal import Decimal

import pytest

from remitrecon.exceptions import DatabaseIntegrityError
from remitrecon.reconciliation.domain.value_objects import LedgerKey
from remitrecon.storage.repository import (
    BillingLedgerRepository,
    RemittanceInvoiceRepository,
    VendorCaseRepository,
    VendorRepository,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def invoices(db_session):
    return RemittanceInvoiceRepository(db_session)


class TestFetchUnmapped:
    def test_payments_are_positive_unmapped_and_ordered(self, seeder, invoices):
        vendor = seeder.vendor()
        case = seeder.case(vendor)
        p2 = seeder.payment(vendor, payment_number="PAY-2")
        p1 = seeder.payment(vendor, payment_number="PAY-1")
        seeder.deduction(vendor, case)
        seeder.invoice(vendor, "0.00", sub_invoice_number="SC-0")

        payments = invoices.fetch_unmapped_payments("USD")

        assert [p.id for p in payments] == sorted([p1.id, p2.id])
        assert all(p.invoice_amount > 0 for p in payments)

    def test_payments_already_consumed_are_excluded(self, seeder, invoices):
        vendor = seeder.vendor()
        case = seeder.case(vendor)
        consumed = seeder.payment(vendor)
        open_payment = seeder.payment(vendor, payment_number="PAY-2")
        seeder.deduction(vendor, case, payment_remittance_id=consumed.id)

        assert [p.id for p in invoices.fetch_unmapped_payments("USD")] == [open_payment.id]

    def test_currency_filter(self, seeder, invoices):
        vendor = seeder.vendor()
        usd = seeder.payment(vendor)
        eur = seeder.payment(vendor, invoice_currency="EUR")

        assert [p.id for p in invoices.fetch_unmapped_payments("USD")] == [usd.id]
        assert [p.id for p in invoices.fetch_unmapped_payments("EUR")] == [eur.id]
        assert len(invoices.fetch_unmapped_payments(None)) == 2

    def test_deductions_are_negative_and_unmapped(self, seeder, invoices):
        vendor = seeder.vendor()
        case = seeder.case(vendor)
        payment = seeder.payment(vendor)
        open_deduction = seeder.deduction(vendor, case)
        seeder.deduction(vendor, case, payment_remittance_id=payment.id)

        deductions = invoices.fetch_unmapped_deductions("USD")

        assert [d.id for d in deductions] == [open_deduction.id]
        assert deductions[0].case is None

    def test_eager_deductions_carry_case_and_vendor(self, seeder, invoices):
        vendor = seeder.vendor(organization_id=700, rate="0.15")
        case = seeder.case(vendor)
        seeder.deduction(vendor, case)

        deduction = invoices.fetch_unmapped_deductions("USD", eager=True)[0]

        assert deduction.case.id == case.id
        assert deduction.case.vendor.organization_id == 700
        assert deduction.case.vendor.rate == Decimal("0.15")


class TestMarkDeductionMapped:
    def test_first_writer_wins(self, seeder, invoices):
        vendor = seeder.vendor()
        case = seeder.case(vendor)
        first = seeder.payment(vendor)
        second = seeder.payment(vendor, payment_number="PAY-2")
        deduction = seeder.deduction(vendor, case)

        assert invoices.mark_deduction_mapped(deduction.id, first.id)
        assert not invoices.mark_deduction_mapped(deduction.id, second.id)
        assert invoices.get_deduction(deduction.id).payment_remittance_id == first.id

    def test_payments_cannot_be_marked(self, seeder, invoices):
        vendor = seeder.vendor()
        payment = seeder.payment(vendor)
        other = seeder.payment(vendor, payment_number="PAY-2")

        assert not invoices.mark_deduction_mapped(payment.id, other.id)

    def test_missing_deduction(self, invoices):
        assert not invoices.mark_deduction_mapped(12345, 1)
        assert invoices.get_deduction(12345) is None

    def test_is_payment_consumed(self, seeder, invoices):
        vendor = seeder.vendor()
        case = seeder.case(vendor)
        payment = seeder.payment(vendor)
        deduction = seeder.deduction(vendor, case)

        assert not invoices.is_payment_consumed(payment.id)
        invoices.mark_deduction_mapped(deduction.id, payment.id)
        assert invoices.is_payment_consumed(payment.id)


class TestCaseAndVendorRepositories:
    def test_get_by_ids(self, seeder, db_session):
        vendor = seeder.vendor(organization_id=700)
        reviewed = seeder.case(vendor, is_valid_case=True)
        unreviewed = seeder.case(vendor, is_valid_case=None)

        cases = VendorCaseRepository(db_session).get_by_ids([reviewed.id, unreviewed.id, 999])
        vendors = VendorRepository(db_session).get_by_ids([vendor.id])

        assert [(c.id, c.is_reviewed) for c in cases] == [(reviewed.id, True), (unreviewed.id, False)]
        assert vendors[0].organization_id == 700

    def test_empty_ids_skip_the_query(self, db_session):
        assert VendorCaseRepository(db_session).get_by_ids([]) == []
        assert VendorRepository(db_session).get_by_ids([]) == []


class TestBillingLedgerRepository:
    @pytest.fixture
    def key(self):
        return LedgerKey(
            vendor_id=None,
            organization_id=700,
            billing_key="PAY-1",
            billing_key2="INV100SC7",
            key_source="RemittanceInvoice",
        )

    def _create(self, repo, key):
        return repo.create(
            key,
            amount=Decimal("25.00"),
            billable_amount=Decimal("3.7500"),
            currency_code="USD",
            description="Billing for INV100SC7",
            case_id="50",
            created_by="auto-mapper-script",
        )

    def test_create_and_find(self, seeder, db_session, key):
        vendor = seeder.vendor()
        key = LedgerKey(vendor.id, 700, key.billing_key, key.billing_key2, key.key_source)
        repo = BillingLedgerRepository(db_session)

        assert repo.find_by_key(key) is None
        entry = self._create(repo, key)

        found = repo.find_by_key(key)
        assert found.id == entry.id
        assert found.key == key
        assert found.billable_amount == Decimal("3.7500")

    def test_duplicate_key_is_rejected(self, seeder, db_session, key):
        vendor = seeder.vendor()
        key = LedgerKey(vendor.id, 700, key.billing_key, key.billing_key2, key.key_source)
        repo = BillingLedgerRepository(db_session)
        self._create(repo, key)

        with pytest.raises(DatabaseIntegrityError):
            self._create(repo, key)

    def test_other_key_source_is_a_different_entry(self, seeder, db_session, key):
        vendor = seeder.vendor()
        key = LedgerKey(vendor.id, 700, key.billing_key, key.billing_key2, key.key_source)
        manual = LedgerKey(vendor.id, 700, key.billing_key, key.billing_key2, "Manual")
        repo = BillingLedgerRepository(db_session)
        self._create(repo, key)

        assert repo.find_by_key(manual) is None
