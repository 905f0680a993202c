"""Payment to deduction reconciliation.

- Deduction index keyed by vendor and root invoice number
- Exact, claim-type aware pair eligibility
- Duplicate-amount guard with manual review reporting
- Atomic deduction mapping with idempotent billing ledger writes
- Events and Prometheus metrics for every run

Architecture: Domain-Driven Design (DDD) + Hexagonal Architecture
"""

__all__ = [
    "ClaimType",
    "SkipReason",
    "InvoiceRecord",
    "CaseReference",
    "VendorProfile",
    "CaseContext",
    "LedgerKey",
    "LedgerEntry",
    "MatchOutcome",
    "RunReport",
]

from .domain.enums import ClaimType, SkipReason
from .domain.value_objects import (
    CaseContext,
    CaseReference,
    InvoiceRecord,
    LedgerEntry,
    LedgerKey,
    MatchOutcome,
    RunReport,
    VendorProfile,
)
