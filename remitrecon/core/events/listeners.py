"""Default event listeners and registration utilities."""

from __future__ import annotations

from dataclasses import asdict

import structlog

from .base import BaseEvent, GlobalEventBus, get_global_event_bus

logger = structlog.get_logger("event_listeners")


def audit_log_listener(event: BaseEvent) -> None:
    """Write every event to the structured audit log.

    Args:
        event: The event to log
    """
    event_data = asdict(event)

    # Convert non-serializable types
    event_data["event_id"] = str(event_data["event_id"])
    event_data["occurred_at"] = event_data["occurred_at"].isoformat()
    if not event_data.get("context"):
        event_data.pop("context", None)

    logger.info(
        "domain_event",
        event_type=event.__class__.__name__,
        **event_data,
    )


def register_default_listeners(event_bus: GlobalEventBus | None = None) -> GlobalEventBus:
    """Register the audit log listener once on the event bus.

    Args:
        event_bus: Event bus instance. If None, uses global singleton.

    Returns:
        The event bus the listener was registered on
    """
    event_bus = event_bus or get_global_event_bus()

    # BaseEvent catches every event type; lowest priority so it logs last
    if not event_bus.is_subscribed(BaseEvent, audit_log_listener):
        event_bus.subscribe(BaseEvent, audit_log_listener, priority=-100)
        logger.debug("default_listeners_registered", listeners=["audit_log_listener"])

    return event_bus
