"""Application services for reconciliation."""

from .ledger_writer import LedgerWriter, compute_billable_amount
from .match_engine import MatchEngine
from .reconciliation_service import LoadedRecords, ReconciliationService, connect

__all__ = [
    "LedgerWriter",
    "compute_billable_amount",
    "MatchEngine",
    "ReconciliationService",
    "LoadedRecords",
    "connect",
]
