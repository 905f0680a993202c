"""Deduction lookup grouped by vendor and root invoice number."""

from collections.abc import Iterable

from ..domain.value_objects import InvoiceRecord

KEY_SEPARATOR = "|"

DeductionIndex = dict[str, list[InvoiceRecord]]


def composite_key(record: InvoiceRecord) -> str:
    """Return ``"<vendor_id>|<root_invoice_number>"`` for a payment or deduction.

    Missing parts render as empty strings, so records without a vendor or a
    root invoice only ever group with equally incomplete records.
    """
    vendor = "" if record.vendor_id is None else str(record.vendor_id)
    root = record.root_invoice_number or ""
    return f"{vendor}{KEY_SEPARATOR}{root}"


def build_deduction_index(deductions: Iterable[InvoiceRecord]) -> DeductionIndex:
    """Group deductions by composite key, keeping their input order in each group.

    Group order decides which candidate wins a tie, so it must match the
    order the store returned.
    """
    index: DeductionIndex = {}
    for deduction in deductions:
        index.setdefault(composite_key(deduction), []).append(deduction)
    return index
