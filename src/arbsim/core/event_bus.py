"""
Session event bus.

Publishes lifecycle, opportunity and trade events so that reporters and
API consumers can observe a session without being wired into its tick.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from arbsim.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Session event types."""

    # Lifecycle events
    SESSION_STARTED = auto()
    SESSION_STOPPED = auto()
    SESSION_HALTED = auto()
    DAILY_RESET = auto()
    SETTINGS_UPDATED = auto()

    # Strategy events
    OPPORTUNITY_FOUND = auto()
    OPPORTUNITY_REJECTED = auto()

    # Execution events
    TRADE_EXECUTED = auto()
    TRADE_ADJUSTED = auto()

    ERROR = auto()


@dataclass(slots=True)
class Event:
    """Event with a free-form payload."""

    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    timestamp_us: int = field(default_factory=get_timestamp_us)


# Type alias for event handlers
EventHandler = Callable[[Event], Awaitable[None]]
SyncEventHandler = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe bus shared by one or more sessions.

    Features:
    - Async and sync handler support
    - Priority-based handler ordering
    - Error isolation per handler
    """

    def __init__(self) -> None:
        """Initialize event bus."""
        self._handlers: dict[EventType, list[tuple[int, EventHandler]]] = defaultdict(list)
        self._sync_handlers: dict[EventType, list[tuple[int, SyncEventHandler]]] = defaultdict(list)
        self._paused = False

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe an async handler to an event type.

        Args:
            event_type: Event type to handle.
            handler: Async handler function.
            priority: Handler priority (higher = earlier execution).
        """
        self._handlers[event_type].append((priority, handler))
        self._handlers[event_type].sort(key=lambda x: x[0], reverse=True)

    def subscribe_sync(
        self,
        event_type: EventType,
        handler: SyncEventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe a sync handler to an event type.

        Args:
            event_type: Event type to handle.
            handler: Sync handler function.
            priority: Handler priority.
        """
        self._sync_handlers[event_type].append((priority, handler))
        self._sync_handlers[event_type].sort(key=lambda x: x[0], reverse=True)

    def unsubscribe(
        self,
        event_type: EventType,
        handler: EventHandler | SyncEventHandler,
    ) -> bool:
        """
        Unsubscribe a handler.

        Returns:
            True if handler was found and removed.
        """
        for registry in (self._handlers, self._sync_handlers):
            for i, (_, registered) in enumerate(registry[event_type]):
                if registered is handler:
                    registry[event_type].pop(i)
                    return True
        return False

    async def publish(self, event: Event) -> None:
        """
        Publish an event to all subscribers.

        Sync handlers run first, then async handlers in priority order.
        """
        if self._paused:
            return

        self.publish_sync(event)

        for _, async_handler in self._handlers[event.type]:
            try:
                await async_handler(event)
            except Exception as e:
                logger.error(f"Async handler error for {event.type.name}: {e}")

    def publish_sync(self, event: Event) -> None:
        """
        Publish event synchronously (sync handlers only).

        Used from code paths that cannot await, such as stop().
        """
        if self._paused:
            return

        for _, handler in self._sync_handlers[event.type]:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Sync handler error for {event.type.name}: {e}")

    def pause(self) -> None:
        """Pause event delivery."""
        self._paused = True

    def resume(self) -> None:
        """Resume event delivery."""
        self._paused = False

    def clear(self, event_type: EventType | None = None) -> None:
        """
        Clear handlers.

        Args:
            event_type: Specific type to clear, or None for all.
        """
        if event_type:
            self._handlers[event_type].clear()
            self._sync_handlers[event_type].clear()
        else:
            self._handlers.clear()
            self._sync_handlers.clear()

    def handler_count(self, event_type: EventType) -> int:
        """Get number of handlers for an event type."""
        return len(self._handlers[event_type]) + len(self._sync_handlers[event_type])

    @property
    def is_paused(self) -> bool:
        """Check if event bus is paused."""
        return self._paused
