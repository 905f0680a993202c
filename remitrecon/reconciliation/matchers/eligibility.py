"""Pair eligibility rules for payment/deduction matching.

A payment may consume a deduction only when all of the following hold:

1. Both sub-invoice numbers carry exactly one claim marker ("SC" or "PC").
2. The markers agree: shortage claims offset shortage claims, price claims
   offset price claims.
3. Both records belong to the same currency.
4. ``payment amount == |deduction amount|`` as exact decimals.
5. The deduction is not dated after the payment.
6. The deduction's case resolved to a reviewed case with a vendor and an
   organization (see ``resolvers``).

There is no scoring: the result is a plain yes/no and the first eligible
candidate wins.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from ..domain.enums import ClaimType
from ..domain.value_objects import CaseContext, InvoiceRecord

ZERO = Decimal("0")


def claim_type_of(record: InvoiceRecord) -> ClaimType | None:
    """Return the claim type marked in the sub-invoice number.

    Records carrying neither marker, or both, are not claims.
    """
    sub_invoice = record.sub_invoice_number or ""
    found = [claim for claim in ClaimType if claim.marker in sub_invoice]
    if len(found) != 1:
        return None
    return found[0]


def parse_amount(value: Any) -> Decimal:
    """Coerce a stored amount into a Decimal.

    Missing, non-numeric and non-finite values count as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        # repr keeps the shortest round-tripping form instead of binary noise
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (TypeError, ValueError, InvalidOperation):
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def amounts_match(payment: InvoiceRecord, deduction: InvoiceRecord) -> bool:
    """Exact equality between the payment amount and the deduction's absolute amount."""
    return parse_amount(payment.invoice_amount) == abs(parse_amount(deduction.invoice_amount))


def is_chronologically_valid(payment: InvoiceRecord, deduction: InvoiceRecord) -> bool:
    """The deduction must not be dated strictly after the payment.

    Undated records cannot be ordered and are never valid.
    """
    if payment.invoice_date is None or deduction.invoice_date is None:
        return False
    return deduction.invoice_date <= payment.invoice_date


def currencies_match(payment: InvoiceRecord, deduction: InvoiceRecord) -> bool:
    return (payment.invoice_currency or "").upper() == (deduction.invoice_currency or "").upper()


def ineligibility_reason(
    payment: InvoiceRecord,
    deduction: InvoiceRecord,
    context: CaseContext | None,
) -> str | None:
    """Return the first rule the pair breaks, or None when it may match."""
    payment_claim = claim_type_of(payment)
    if payment_claim is None:
        return "payment_not_a_claim"

    deduction_claim = claim_type_of(deduction)
    if deduction_claim is None:
        return "deduction_not_a_claim"
    if deduction_claim is not payment_claim:
        return "claim_type_mismatch"

    if not currencies_match(payment, deduction):
        return "currency_mismatch"

    if not amounts_match(payment, deduction):
        return "amount_mismatch"

    if not is_chronologically_valid(payment, deduction):
        return "deduction_after_payment"

    if context is None:
        return "case_unresolved"

    return None


def is_eligible(
    payment: InvoiceRecord,
    deduction: InvoiceRecord,
    context: CaseContext | None,
) -> bool:
    """Whether ``payment`` may consume ``deduction`` given its resolved case context."""
    return ineligibility_reason(payment, deduction, context) is None
