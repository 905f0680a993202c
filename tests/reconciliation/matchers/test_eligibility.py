"""Tests for the pair eligibility rules.

A payment may consume a deduction only when claim markers agree, the
amounts are exactly equal in magnitude, the deduction is not dated after
the payment and the deduction's case resolved.
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from remitrecon.reconciliation.domain.enums import ClaimType
from remitrecon.reconciliation.domain.value_objects import InvoiceRecord
from remitrecon.reconciliation.matchers.eligibility import (
    amounts_match,
    claim_type_of,
    currencies_match,
    ineligibility_reason,
    is_chronologically_valid,
    is_eligible,
    parse_amount,
)

pytestmark = pytest.mark.unit


def _line(sub_invoice: str | None) -> InvoiceRecord:
    return InvoiceRecord(
        id=1,
        vendor_id=1,
        root_invoice_number="INV100",
        sub_invoice_number=sub_invoice,
        invoice_amount=Decimal("1"),
    )


class TestClaimTypeOf:
    """Tests for claim marker detection."""

    @pytest.mark.parametrize(
        "sub_invoice,expected",
        [
            ("SC-7", ClaimType.SHORTAGE),
            ("INV100SC3", ClaimType.SHORTAGE),
            ("PC-1", ClaimType.PRICE),
            ("X-PC", ClaimType.PRICE),
        ],
    )
    def test_detects_marker(self, sub_invoice, expected):
        assert claim_type_of(_line(sub_invoice)) is expected

    @pytest.mark.parametrize("sub_invoice", ["", None, "ADJ-4", "sc-7", "S-C"])
    def test_no_marker_is_not_a_claim(self, sub_invoice):
        assert claim_type_of(_line(sub_invoice)) is None

    def test_both_markers_is_not_a_claim(self):
        """A sub-invoice carrying both markers cannot be classified."""
        assert claim_type_of(_line("SC-PC-2")) is None


class TestParseAmount:
    """Tests for amount coercion."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (Decimal("25.00"), Decimal("25.00")),
            ("-25.00", Decimal("-25.00")),
            (" 12.5 ", Decimal("12.5")),
            (40, Decimal("40")),
            (0.1, Decimal("0.1")),
        ],
    )
    def test_numeric_values(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "Infinity", float("nan")])
    def test_invalid_values_are_zero(self, raw):
        assert parse_amount(raw) == Decimal("0")

    def test_float_has_no_binary_noise(self):
        assert parse_amount(0.1) != Decimal(0.1)
        assert parse_amount(0.1) == Decimal("0.1")


class TestAmountsMatch:
    """Tests for exact decimal amount equality."""

    def test_equal_magnitude_matches(self, make_payment, make_deduction):
        payment = make_payment(invoice_amount=Decimal("25.00"))
        deduction = make_deduction(invoice_amount=Decimal("-25.00"))
        assert amounts_match(payment, deduction)

    def test_scale_does_not_matter(self, make_payment, make_deduction):
        payment = make_payment(invoice_amount="50.0")
        deduction = make_deduction(invoice_amount=Decimal("-50.00"))
        assert amounts_match(payment, deduction)

    def test_one_cent_difference_does_not_match(self, make_payment, make_deduction):
        payment = make_payment(invoice_amount=Decimal("25.00"))
        deduction = make_deduction(invoice_amount=Decimal("-25.01"))
        assert not amounts_match(payment, deduction)

    def test_no_tolerance_for_float_noise(self, make_payment, make_deduction):
        """0.1 + 0.2 is not 0.3 once it has been stored as a float."""
        payment = make_payment(invoice_amount=0.1 + 0.2)
        deduction = make_deduction(invoice_amount=Decimal("-0.3"))
        assert not amounts_match(payment, deduction)


class TestAmountMatchProperties:
    """Property-based checks of exact amount equality."""

    @given(
        amount=st.decimals(
            min_value=Decimal("0.01"),
            max_value=Decimal("999999.99"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        )
    )
    def test_negated_amount_always_matches(self, amount):
        payment = InvoiceRecord(1, 1, "R", "SC-1", amount)
        deduction = InvoiceRecord(2, 1, "R", "SC-2", -amount)
        assert amounts_match(payment, deduction)

    @given(
        amount=st.decimals(
            min_value=Decimal("0.01"),
            max_value=Decimal("999999.99"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        ),
        cents=st.integers(min_value=1, max_value=10_000),
    )
    def test_any_difference_never_matches(self, amount, cents):
        payment = InvoiceRecord(1, 1, "R", "SC-1", amount)
        deduction = InvoiceRecord(2, 1, "R", "SC-2", -(amount + Decimal(cents) / 100))
        assert not amounts_match(payment, deduction)


class TestChronology:
    """Tests for the deduction-not-after-payment rule."""

    def test_earlier_deduction_is_valid(self, make_payment, make_deduction):
        assert is_chronologically_valid(
            make_payment(invoice_date=date(2024, 2, 1)),
            make_deduction(invoice_date=date(2024, 1, 15)),
        )

    def test_same_day_is_valid(self, make_payment, make_deduction):
        assert is_chronologically_valid(
            make_payment(invoice_date=date(2024, 2, 1)),
            make_deduction(invoice_date=date(2024, 2, 1)),
        )

    def test_later_deduction_is_invalid(self, make_payment, make_deduction):
        assert not is_chronologically_valid(
            make_payment(invoice_date=date(2024, 2, 1)),
            make_deduction(invoice_date=date(2024, 3, 1)),
        )

    @pytest.mark.parametrize("missing", ["payment", "deduction"])
    def test_missing_date_is_invalid(self, make_payment, make_deduction, missing):
        payment = make_payment(invoice_date=None if missing == "payment" else date(2024, 2, 1))
        deduction = make_deduction(
            invoice_date=None if missing == "deduction" else date(2024, 1, 15)
        )
        assert not is_chronologically_valid(payment, deduction)


class TestIneligibilityReason:
    """Tests for the combined eligibility decision."""

    def test_matching_pair_is_eligible(self, make_payment, make_deduction, case_context):
        payment, deduction = make_payment(), make_deduction()
        assert ineligibility_reason(payment, deduction, case_context) is None
        assert is_eligible(payment, deduction, case_context)

    def test_price_claims_match_price_claims(self, make_payment, make_deduction, case_context):
        payment = make_payment(sub_invoice_number="PC-1")
        deduction = make_deduction(sub_invoice_number="PC-2")
        assert is_eligible(payment, deduction, case_context)

    @pytest.mark.parametrize(
        "payment_kw,deduction_kw,reason",
        [
            ({"sub_invoice_number": "ADJ-1"}, {}, "payment_not_a_claim"),
            ({}, {"sub_invoice_number": "ADJ-1"}, "deduction_not_a_claim"),
            ({}, {"sub_invoice_number": "PC-3"}, "claim_type_mismatch"),
            ({}, {"invoice_currency": "EUR"}, "currency_mismatch"),
            ({}, {"invoice_amount": Decimal("-24.99")}, "amount_mismatch"),
            ({}, {"invoice_date": date(2024, 3, 1)}, "deduction_after_payment"),
        ],
    )
    def test_first_broken_rule_is_reported(
        self, make_payment, make_deduction, case_context, payment_kw, deduction_kw, reason
    ):
        payment = make_payment(**payment_kw)
        deduction = make_deduction(**deduction_kw)
        assert ineligibility_reason(payment, deduction, case_context) == reason
        assert not is_eligible(payment, deduction, case_context)

    def test_unresolved_case_is_ineligible(self, make_payment, make_deduction):
        assert ineligibility_reason(make_payment(), make_deduction(), None) == "case_unresolved"

    def test_currency_comparison_ignores_case(self, make_payment, make_deduction):
        assert currencies_match(
            make_payment(invoice_currency="usd"), make_deduction(invoice_currency="USD")
        )
