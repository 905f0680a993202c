"""Reconciliation domain: enums and typed records."""

from .enums import ClaimType, SkipReason
from .value_objects import (
    CaseContext,
    CaseReference,
    FailedAttempt,
    InvoiceRecord,
    LedgerEntry,
    LedgerKey,
    MatchOutcome,
    RunReport,
    VendorProfile,
)

__all__ = [
    "ClaimType",
    "SkipReason",
    "CaseContext",
    "CaseReference",
    "FailedAttempt",
    "InvoiceRecord",
    "LedgerEntry",
    "LedgerKey",
    "MatchOutcome",
    "RunReport",
    "VendorProfile",
]
