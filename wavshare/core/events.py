"""
Event Bus for wavshare.

This module provides a simple pub/sub event system for decoupled communication
between components.

Event types:
- queue.changed: A user's queue was mutated (add/add_next/remove/reorder/clear/add_playlist)
- queue.settings: A user's shuffle/repeat settings changed
- playback.status: The playback controller changed state (play/pause/volume/track)
- playback.track_ended: The current track reached its end (used for auto-removal)

Usage:
    from wavshare.core.events import event_bus

    async def on_queue_changed(event: QueueChangedEvent) -> None:
        print(f"Queue of user {event.user_id} changed: {event.action}")

    await event_bus.subscribe("queue.changed", on_queue_changed)

    await event_bus.publish(QueueChangedEvent(user_id=1, action="add", count=3))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class QueueChangedEvent(Event):
    """Fired after a successful queue mutation."""

    event_type: str = field(default="queue.changed", init=False)
    user_id: int = 0
    action: str = ""  # add, add_next, remove, reorder, clear, add_playlist
    count: int = 0  # queue length after the mutation
    post_ids: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "user_id": self.user_id,
            "action": self.action,
            "count": self.count,
            "post_ids": list(self.post_ids),
        }


@dataclass
class QueueSettingsEvent(Event):
    """Fired when a user's queue settings change."""

    event_type: str = field(default="queue.settings", init=False)
    user_id: int = 0
    shuffle_mode: bool = False
    repeat_mode: str = "off"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "user_id": self.user_id,
            "shuffle_mode": self.shuffle_mode,
            "repeat_mode": self.repeat_mode,
        }


@dataclass
class PlaybackStatusEvent(Event):
    """Fired when the playback controller changes state."""

    event_type: str = field(default="playback.status", init=False)
    state: str = ""  # idle, playing, paused
    post_id: int | None = None
    track_index: int = -1
    volume: float = 0.0
    current_time: float = 0.0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.event_type,
            "state": self.state,
            "track_index": self.track_index,
            "volume": self.volume,
            "current_time": self.current_time,
            "duration": self.duration,
        }
        if self.post_id is not None:
            result["post_id"] = self.post_id
        return result


@dataclass
class PlaybackTrackEndedEvent(Event):
    """Fired when the current track plays to its end.

    Subscribers are awaited before the controller auto-advances, so a
    subscriber that removes the finished track from the queue (and pushes
    the new queue into the controller) is done before the next track is
    picked.
    """

    event_type: str = field(default="playback.track_ended", init=False)
    post_id: int | None = None
    track_index: int = -1

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.event_type, "track_index": self.track_index}
        if self.post_id is not None:
            result["post_id"] = self.post_id
        return result


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions (e.g., "queue.*")
    - Async handlers
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to subscribe to. Use "*" suffix for wildcards.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            if event_type not in self._handlers:
                self._handlers[event_type] = []
            self._handlers[event_type].append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            if event_type in self._handlers:
                try:
                    self._handlers[event_type].remove(handler)
                    logger.debug("Unsubscribed from %s: %s", event_type, handler)
                    return True
                except ValueError:
                    pass
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers that received the event.
        """
        event_type = event.event_type
        handlers_called = 0

        # Collect matching handlers
        async with self._lock:
            matching_handlers: list[EventHandler] = []

            # Exact match
            if event_type in self._handlers:
                matching_handlers.extend(self._handlers[event_type])

            # Wildcard matches (e.g., "queue.*" matches "queue.changed")
            for pattern, handlers in self._handlers.items():
                if pattern.endswith(".*"):
                    prefix = pattern[:-2]
                    if event_type.startswith(prefix + "."):
                        matching_handlers.extend(handlers)
                elif pattern == "*":
                    matching_handlers.extend(handlers)

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called


# Global event bus instance
event_bus = EventBus()
