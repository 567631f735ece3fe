"""Simple in-process event bus carrying host browser events."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[dict[str, Any]], Any]

TAB_ACTIVATED = "tab.activated"
TAB_CREATED = "tab.created"
TAB_UPDATED = "tab.updated"
TAB_GROUP_REMOVED = "tab_group.removed"
WINDOW_CREATED = "window.created"
WINDOW_REMOVED = "window.removed"
RUNTIME_MESSAGE = "runtime.message"
OPTIONS_CHANGED = "options.changed"


class EventBus:
    """Dispatches events to subscribers by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> bool:
        """Remove a previously registered callback."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def has_subscribers(self, event_name: str) -> bool:
        return bool(self._handlers.get(event_name))

    def emit(self, event_name: str, payload: dict[str, Any]) -> list[Any]:
        """Emit an event to all subscribers and return their results."""
        return [handler(payload) for handler in list(self._handlers.get(event_name, []))]
