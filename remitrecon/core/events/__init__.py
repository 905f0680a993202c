"""In-process event system.

Example:
    >>> from remitrecon.core.events import GlobalEventBus, register_default_listeners
    >>> bus = register_default_listeners(GlobalEventBus())
    >>> bus.subscribe(PaymentMatchedEvent, my_handler)
"""

from __future__ import annotations

__all__ = [
    "BaseEvent",
    "EventBus",
    "GlobalEventBus",
    "get_global_event_bus",
    "audit_log_listener",
    "register_default_listeners",
]

from .base import BaseEvent, EventBus, GlobalEventBus, get_global_event_bus
from .listeners import audit_log_listener, register_default_listeners
