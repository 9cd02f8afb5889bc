"""Event bus: agents, the bench and the daemon publish what they do here.

Topics are dotted ("hunter.discovery", "orchestrator.conflict") and
subscriptions accept fnmatch wildcards, so "hunter.*" follows one agent
and "*" follows everything. The dashboard WebSocket is just another sink.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from cryptoagency.types import new_id

_logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], Awaitable[None]]


class Event(BaseModel):
    id: str = Field(default_factory=new_id)
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EventBus:
    """Async fan-out of agent activity to subscribers and live sockets."""

    def __init__(self, history_limit: int = 500) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._sinks: list[EventHandler] = []
        self._history: list[Event] = []
        self._history_limit = history_limit
        self._lock = asyncio.Lock()

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        self._handlers[pattern].append(handler)

    def unsubscribe(self, pattern: str, handler: EventHandler) -> None:
        if handler in self._handlers.get(pattern, []):
            self._handlers[pattern].remove(handler)

    async def emit(self, topic: str, data: dict | None = None, source: str = "") -> Event:
        """Record an event and deliver it to every matching handler."""
        event = Event(topic=topic, data=data or {}, source=source)

        async with self._lock:
            self._history.append(event)
            del self._history[:-self._history_limit]

        deliveries = [
            handler(event)
            for pattern, handlers in self._handlers.items()
            if fnmatch.fnmatch(topic, pattern)
            for handler in handlers
        ]
        deliveries.extend(sink(event) for sink in self._sinks)

        if deliveries:
            results = await asyncio.gather(*deliveries, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    _logger.warning("Event handler failed on %s: %s", topic, result)
        return event

    def add_ws_connection(self, send_fn: EventHandler) -> None:
        self._sinks.append(send_fn)

    def remove_ws_connection(self, send_fn: EventHandler) -> None:
        if send_fn in self._sinks:
            self._sinks.remove(send_fn)

    def history(self, topic_filter: str = "*", limit: int = 50) -> list[Event]:
        """Most recent events first."""
        matching = [e for e in self._history if fnmatch.fnmatch(e.topic, topic_filter)]
        return matching[::-1][:limit]

    def topic_counts(self) -> dict[str, int]:
        return dict(Counter(e.topic for e in self._history))

    @property
    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    @property
    def ws_connection_count(self) -> int:
        return len(self._sinks)
