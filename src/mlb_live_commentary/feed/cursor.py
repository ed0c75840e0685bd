"""Timestamp cursor over a game's liveTimestampv11 list.

The cursor caches the not-yet-consumed timestamps of one game and walks them
forward. When the cache is empty or its last entry has been handed out, the
full list is fetched again and trimmed to the suffix after the last consumed
timestamp.
"""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class PollCursor:
    """Decides whether to refetch timestamps or advance through the cache.

    Invariant: ``index`` is the position of the last handed-out timestamp,
    -1 when none of the cached entries has been handed out (always so for an
    empty cache).

    Usage:
        >>> cursor = PollCursor()
        >>> ts = cursor.next(lambda: client.list_timestamps(game_pk), last_consumed=None)
    """

    def __init__(self):
        self.timestamps: list[str] = []
        self.index = -1

    @property
    def needs_refresh(self) -> bool:
        """Check if the timestamp list must be fetched again."""
        return not self.timestamps or self.index >= len(self.timestamps) - 1

    def refresh(self, timestamps: list[str], last_consumed: str | None) -> str | None:
        """Replace the cache with the timestamps after ``last_consumed``.

        Args:
            timestamps: Full upstream timestamp list, oldest first
            last_consumed: Last timestamp whose snapshot was processed

        Returns:
            First new timestamp, or None if upstream has nothing new
        """
        fresh = self.filter_new(timestamps, last_consumed)
        self.timestamps = fresh

        if not fresh:
            self.index = -1
            logger.debug("No new timestamps available")
            return None

        self.index = 0
        logger.debug(f"Cached {len(fresh)} new timestamps")
        return fresh[0]

    def advance(self) -> str:
        """Move to the next cached timestamp."""
        if self.needs_refresh:
            raise IndexError("Timestamp cache exhausted")

        self.index += 1
        logger.debug(f"Using cached timestamp at index: {self.index}")
        return self.timestamps[self.index]

    def next(
        self,
        fetch_timestamps: Callable[[], list[str]],
        last_consumed: str | None,
    ) -> str | None:
        """Return the next timestamp to fetch a snapshot for.

        Args:
            fetch_timestamps: Called for the full upstream list when a refresh is due
            last_consumed: Last timestamp whose snapshot was processed

        Returns:
            Timestamp string, or None if there is no new data
        """
        if self.needs_refresh:
            return self.refresh(fetch_timestamps(), last_consumed)
        return self.advance()

    def rewind(self) -> None:
        """Step back one position so the last handed-out timestamp is returned again."""
        if self.index >= 0:
            self.index -= 1
            logger.debug(f"Rewound timestamp cursor to index: {self.index}")

    def reset(self) -> None:
        self.timestamps = []
        self.index = -1

    @staticmethod
    def filter_new(timestamps: list[str], last_consumed: str | None) -> list[str]:
        """Keep the timestamps strictly after ``last_consumed``.

        Without a ``last_consumed`` everything is new. When it is missing
        from the list, timecodes (YYYYMMDD_HHMMSS_mmm, which sort
        chronologically) later than it are kept. The full list is not kept in
        that case, since it would hand out timestamps older than one already
        consumed.
        """
        if not timestamps:
            return []

        if last_consumed is None:
            return list(timestamps)

        if last_consumed in timestamps:
            return list(timestamps[timestamps.index(last_consumed) + 1 :])
        return [ts for ts in timestamps if ts > last_consumed]
