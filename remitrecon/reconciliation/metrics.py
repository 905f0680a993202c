"""Prometheus metrics instrumentation for reconciliation runs.

Metrics are fed by an event listener, so the engine itself stays unaware of
Prometheus. The HTTP exporter only starts when ``prometheus_enabled`` is set.
"""

from prometheus_client import Counter, Histogram, start_http_server

from ..core.events.base import BaseEvent, GlobalEventBus
from ..utils.logging import get_logger
from .application.events import (
    DeductionGroupAmbiguousEvent,
    MatchAttemptFailedEvent,
    PaymentMatchedEvent,
    PaymentSkippedEvent,
    ReconciliationCompletedEvent,
)

logger = get_logger(__name__)

# ============================================================================
# Metric Definitions
# ============================================================================

payments_seen_total = Counter(
    "remitrecon_payments_seen_total",
    "Total number of unmapped payments examined",
)

payments_matched_total = Counter(
    "remitrecon_payments_matched_total",
    "Total number of payments mapped to a deduction",
    ["ledger"],  # labels: created/existing
)

payments_skipped_total = Counter(
    "remitrecon_payments_skipped_total",
    "Total number of payments left unmatched",
    ["reason"],  # labels: not_a_claim/no_candidates/ambiguous_group/no_eligible_deduction
)

ambiguous_groups_total = Counter(
    "remitrecon_ambiguous_groups_total",
    "Deduction groups skipped because of duplicate amounts",
)

match_attempt_failures_total = Counter(
    "remitrecon_match_attempt_failures_total",
    "Units of work rolled back while mapping a pair",
    ["error_type"],
)

run_duration_seconds = Histogram(
    "remitrecon_run_duration_seconds",
    "Wall-clock duration of a reconciliation run",
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0),
)


# ============================================================================
# Metrics Server
# ============================================================================


def start_metrics_server(port: int = 8000) -> bool:
    """Start the Prometheus metrics HTTP server.

    Returns:
        True if the server started, False if the port was unavailable
    """
    try:
        start_http_server(port)
    except OSError as e:
        logger.warning("metrics_server_unavailable", port=port, error=str(e))
        return False
    logger.info("metrics_server_started", port=port)
    return True


# ============================================================================
# Event Listener
# ============================================================================


def metrics_listener(event: BaseEvent) -> None:
    """Translate reconciliation events into metric updates."""
    if isinstance(event, PaymentMatchedEvent):
        payments_matched_total.labels(
            ledger="created" if event.ledger_created else "existing"
        ).inc()
    elif isinstance(event, PaymentSkippedEvent):
        payments_skipped_total.labels(reason=event.reason).inc()
    elif isinstance(event, DeductionGroupAmbiguousEvent):
        ambiguous_groups_total.inc()
    elif isinstance(event, MatchAttemptFailedEvent):
        match_attempt_failures_total.labels(error_type=event.error_type).inc()
    elif isinstance(event, ReconciliationCompletedEvent):
        payments_seen_total.inc(event.payments_seen)
        run_duration_seconds.observe(event.duration_seconds)


def register_metrics_listener(event_bus: GlobalEventBus) -> None:
    """Subscribe the metrics listener to every event on ``event_bus`` (once)."""
    if not event_bus.is_subscribed(BaseEvent, metrics_listener):
        event_bus.subscribe(BaseEvent, metrics_listener, priority=-50)
