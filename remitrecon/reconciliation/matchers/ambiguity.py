"""Duplicate-amount guard for deduction groups."""

from collections.abc import Iterable
from decimal import Decimal

from ..domain.value_objects import InvoiceRecord
from .eligibility import parse_amount


def has_ambiguous_amounts(group: Iterable[InvoiceRecord]) -> bool:
    """Return True as soon as two deductions in the group share an amount.

    A payment cannot tell such deductions apart, so the whole group is left
    for manual review. Amounts compare as decimals: ``-50.00`` and ``-50.0``
    are the same amount.
    """
    seen: set[Decimal] = set()
    for deduction in group:
        amount = parse_amount(deduction.invoice_amount)
        if amount in seen:
            return True
        seen.add(amount)
    return False
