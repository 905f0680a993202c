"""Matching building blocks.

- index: groups deductions by vendor and root invoice number
- eligibility: yes/no rules for a single payment/deduction pair
- ambiguity: duplicate-amount guard over a deduction group
- resolvers: case context strategies (batch prefetch or eager join)

Usage:
    >>> from remitrecon.reconciliation.matchers import build_deduction_index, is_eligible
    >>> index = build_deduction_index(deductions)
    >>> group = index.get(composite_key(payment), [])
"""

__all__ = [
    "build_deduction_index",
    "composite_key",
    "claim_type_of",
    "parse_amount",
    "amounts_match",
    "is_chronologically_valid",
    "is_eligible",
    "ineligibility_reason",
    "has_ambiguous_amounts",
    "ICaseContextResolver",
    "BatchCaseContextResolver",
    "EagerCaseContextResolver",
]

from .ambiguity import has_ambiguous_amounts
from .eligibility import (
    amounts_match,
    claim_type_of,
    ineligibility_reason,
    is_chronologically_valid,
    is_eligible,
    parse_amount,
)
from .index import build_deduction_index, composite_key
from .resolvers import BatchCaseContextResolver, EagerCaseContextResolver, ICaseContextResolver
