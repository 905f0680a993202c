"""Base event system infrastructure.

Provides the core event classes and the in-process event bus used to report
what a reconciliation run did, without the engine knowing who listens.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import UUID, uuid4

import structlog

logger = structlog.get_logger("events")


@dataclass(frozen=True)
class BaseEvent:
    """Base class for all domain events.

    All events are immutable (frozen dataclass) and include standard metadata:
    - event_id: Unique identifier for this event instance
    - occurred_at: Timestamp when the event occurred (UTC)
    - context: Optional additional context data
    """

    event_id: UUID = field(default_factory=uuid4, init=False)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC), init=False)
    context: dict[str, Any] | None = field(default=None, kw_only=True)


class EventBus(Protocol):
    """Contract for event bus implementations."""

    def subscribe(
        self,
        event_type: type[BaseEvent],
        handler: Callable[[BaseEvent], Any],
        priority: int = 0,
    ) -> None: ...

    def unsubscribe(
        self,
        event_type: type[BaseEvent],
        handler: Callable[[BaseEvent], Any],
    ) -> None: ...

    def publish(self, event: BaseEvent) -> None: ...


@dataclass
class _HandlerRegistration:
    """Internal registration data for event handlers."""

    handler: Callable[[BaseEvent], Any]
    priority: int


class GlobalEventBus:
    """In-memory synchronous event bus.

    Features:
    - Priority-based handler execution (higher priority = executed first)
    - Event type filtering, including subclasses
    - Error isolation (one handler failure doesn't affect others or the publisher)

    Example:
        >>> bus = GlobalEventBus()
        >>> bus.subscribe(PaymentMatchedEvent, my_handler, priority=10)
        >>> bus.publish(PaymentMatchedEvent(payment_id=1, deduction_id=9, ...))
    """

    def __init__(self) -> None:
        self._handlers: dict[type[BaseEvent], list[_HandlerRegistration]] = defaultdict(list)
        self._event_count: dict[str, int] = defaultdict(int)

    def subscribe(
        self,
        event_type: type[BaseEvent],
        handler: Callable[[BaseEvent], Any],
        priority: int = 0,
    ) -> None:
        """Register a handler for the given event type.

        Args:
            event_type: The event class to listen for (subclasses included)
            handler: Callable that processes the event
            priority: Handler priority (higher = executed first). Default: 0
        """
        self._handlers[event_type].append(_HandlerRegistration(handler=handler, priority=priority))
        self._handlers[event_type].sort(key=lambda r: r.priority, reverse=True)

        logger.debug(
            "handler_registered",
            event_type=event_type.__name__,
            handler=_handler_name(handler),
            priority=priority,
        )

    def unsubscribe(
        self,
        event_type: type[BaseEvent],
        handler: Callable[[BaseEvent], Any],
    ) -> None:
        """Remove a handler for the given event type."""
        if event_type in self._handlers:
            self._handlers[event_type] = [
                reg for reg in self._handlers[event_type] if reg.handler != handler
            ]

            logger.debug(
                "handler_unregistered",
                event_type=event_type.__name__,
                handler=_handler_name(handler),
            )

    def is_subscribed(self, event_type: type[BaseEvent], handler: Callable[[BaseEvent], Any]) -> bool:
        return any(reg.handler == handler for reg in self._handlers.get(event_type, []))

    def publish(self, event: BaseEvent) -> None:
        """Publish an event to all registered handlers, in priority order."""
        event_name = type(event).__name__
        self._event_count[event_name] += 1

        handlers = self._get_handlers_for_event(event)
        if not handlers:
            logger.debug("no_handlers_found", event_type=event_name)
            return

        for registration in handlers:
            try:
                registration.handler(event)
            except Exception as e:
                # Isolate handler failures - log but don't propagate
                logger.error(
                    "handler_failed",
                    event_type=event_name,
                    handler=_handler_name(registration.handler),
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    def _get_handlers_for_event(self, event: BaseEvent) -> list[_HandlerRegistration]:
        """Get all handlers that should receive this event (exact type or base class)."""
        handlers: list[_HandlerRegistration] = []

        for event_type, registrations in self._handlers.items():
            if isinstance(event, event_type):
                handlers.extend(registrations)

        handlers.sort(key=lambda r: r.priority, reverse=True)
        return handlers

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics."""
        handler_count = sum(len(regs) for regs in self._handlers.values())

        return {
            "total_handlers": handler_count,
            "event_types": len(self._handlers),
            "events_published": dict(self._event_count),
            "total_events": sum(self._event_count.values()),
        }


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__name__", type(handler).__name__)


# Global singleton instance
_global_event_bus: GlobalEventBus | None = None


def get_global_event_bus() -> GlobalEventBus:
    """Get the global event bus singleton instance."""
    global _global_event_bus
    if _global_event_bus is None:
        _global_event_bus = GlobalEventBus()
        logger.debug("global_event_bus_initialized")
    return _global_event_bus
