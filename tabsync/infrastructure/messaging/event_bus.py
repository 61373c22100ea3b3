"""Simple in-memory event bus for browser events.

The browser binding publishes tab/window/bookmark events here; the sync
orchestrator and the workspace loader subscribe to the ones they care about.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tabsync.adapters.browser.events import BrowserEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=BrowserEvent)

EventHandler = Callable[[TEvent], Awaitable[None]]


def _handler_name(handler: Callable[..., object]) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventBus:
    """Simple in-memory event bus for browser events.

    Example:
        ```python
        bus = EventBus()

        async def on_tab_updated(event: TabUpdated):
            print(f"Tab {event.tab_id} changed")

        bus.subscribe(TabUpdated, on_tab_updated)
        await bus.publish(TabUpdated(tab_id=7, title="Docs"))
        ```

    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Subscribe a handler to a specific event type."""
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": _handler_name(handler),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

    def unsubscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Unsubscribe a handler from an event type; unknown handlers are logged."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                logger.warning(
                    "event_handler_not_found",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": _handler_name(handler),
                    },
                )

    async def publish(self, event: BrowserEvent) -> None:
        """Publish an event to all handlers subscribed to its exact type.

        Handlers run one after another. A failing handler is logged and the
        remaining handlers still run.
        """
        event_type = type(event)
        # Copy: handlers may unsubscribe themselves while being called.
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug("event_published_no_handlers", extra={"event_type": event_type.__name__})
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": _handler_name(handler),
                        "error": str(exc),
                    },
                )

    def clear_handlers(self, event_type: type[TEvent] | None = None) -> None:
        """Clear handlers for a specific event type or all handlers."""
        if event_type is not None:
            self._handlers.pop(event_type, None)
        else:
            self._handlers.clear()

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        return len(self._handlers.get(event_type, []))

    def get_all_event_types(self) -> list[type]:
        """Event types that currently have at least one handler."""
        return [event_type for event_type, handlers in self._handlers.items() if handlers]
