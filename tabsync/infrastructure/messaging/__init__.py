"""In-process messaging."""

from tabsync.infrastructure.messaging.event_bus import EventBus

__all__ = ["EventBus"]
