"""Reconciliation events.

Emitted by the match engine in place of console narration; listeners turn
them into audit log lines, Prometheus metrics or CLI output.
"""

from __future__ import annotations

from dataclasses import dataclass

from ...core.events.base import BaseEvent


@dataclass(frozen=True)
class ReconciliationStartedEvent(BaseEvent):
    """Fetch phase finished; matching is about to start."""

    payments: int
    deductions: int
    currency: str | None = None
    strategy: str | None = None


@dataclass(frozen=True)
class PaymentSkippedEvent(BaseEvent):
    """A payment left the engine without a match."""

    payment_id: int
    reason: str
    composite_key: str | None = None


@dataclass(frozen=True)
class DeductionGroupAmbiguousEvent(BaseEvent):
    """A deduction group holds duplicate amounts and needs manual review."""

    payment_id: int
    composite_key: str
    deduction_ids: tuple[int, ...]


@dataclass(frozen=True)
class PaymentMatchedEvent(BaseEvent):
    """A payment consumed a deduction and its ledger entry is recorded."""

    payment_id: int
    deduction_id: int
    ledger_entry_id: int | None
    ledger_created: bool
    amount: str


@dataclass(frozen=True)
class MatchAttemptFailedEvent(BaseEvent):
    """The unit of work for a pair rolled back."""

    payment_id: int
    deduction_id: int
    error: str
    error_type: str


@dataclass(frozen=True)
class ReconciliationCompletedEvent(BaseEvent):
    """The run finished; carries the final counters."""

    payments_seen: int
    payments_matched: int
    ledger_entries_created: int
    ambiguous_groups: int
    failed_attempts: int
    duration_seconds: float
