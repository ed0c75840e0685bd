"""FIFO buffer of enriched events awaiting delivery."""

from collections import deque
from collections.abc import Iterable

from ..models import GameEvent


class EventQueue:
    """Ordered buffer of not-yet-delivered events from the latest snapshot."""

    def __init__(self):
        self._events: deque[GameEvent] = deque()

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    def extend(self, events: Iterable[GameEvent]) -> None:
        self._events.extend(events)

    def poll(self) -> GameEvent | None:
        """Remove and return the oldest event, or None if empty."""
        if not self._events:
            return None
        return self._events.popleft()

    def peek(self) -> GameEvent | None:
        return self._events[0] if self._events else None

    def clear(self) -> None:
        self._events.clear()
