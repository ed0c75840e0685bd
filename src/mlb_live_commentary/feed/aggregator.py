"""Live feed aggregation: polling loop, enrichment and subscriber fan-out.

Each game followed by the live feed gets one ``LiveFeedAggregator``. Its
polling task runs only while the game has subscribers:

1. Skip the tick when nobody is subscribed
2. Deliver one queued event if the event queue is non-empty
3. Otherwise ask the cursor for the next timestamp (refetching the list when due)
4. Skip a timestamp equal to the last consumed one
5. Fetch the snapshot, extract + validate + enrich its plays, deliver the
   first event and queue the rest

The subscriber state is re-checked before every upstream or commentary call,
and a tick started before a reset never writes into the reset state.
"""

import asyncio
import json
import logging
from typing import Any

from ..commentary import CommentaryGenerator
from ..extractors import PlayExtractor
from ..models import GameEvent, StreamFrame
from ..upstream.client import GumboClient
from .cursor import PollCursor
from .event_queue import EventQueue
from .registry import SubscriberRegistry

logger = logging.getLogger(__name__)

LIVE_EVENT = "mlb-update"


class LiveFeedSubscription:
    """Handle of one live feed subscriber.

    Iterating yields ``StreamFrame`` objects: ``mlb-update`` frames carrying a
    GameEvent, and at most one terminal ``error`` frame after which iteration
    stops. Closing (explicitly, by leaving ``async with``, or after the error
    frame) deregisters the subscriber exactly once.

    Usage:
        >>> async with hub.subscribe(775296) as subscription:
        ...     async for frame in subscription:
        ...         print(frame.data.description)
    """

    def __init__(self, aggregator: "LiveFeedAggregator"):
        self.aggregator = aggregator
        self._frames: asyncio.Queue[StreamFrame] = asyncio.Queue()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, frame: StreamFrame) -> None:
        """Queue a frame for this subscriber (dropped once closed)."""
        if not self._closed:
            self._frames.put_nowait(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.aggregator.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> StreamFrame:
        if self._finished or self._closed:
            raise StopAsyncIteration

        frame = await self._frames.get()
        if frame.is_terminal:
            self._finished = True
            self.close()
        return frame

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LiveFeedAggregator:
    """Polls one game's GUMBO feed and broadcasts enriched events.

    The cursor, event queue and last consumed timestamp belong to the polling
    task; the registry resets them when the last subscriber leaves.
    """

    def __init__(
        self,
        game_pk: int,
        client: GumboClient,
        commentator: CommentaryGenerator,
        poll_interval: float = 60,
        conversation_id: str = "riaz",
    ):
        """Initialize the aggregator.

        Args:
            game_pk: Game primary key
            client: Upstream GUMBO client
            commentator: Commentary generator used to enrich events
            poll_interval: Seconds between polling ticks
            conversation_id: Commentary conversation key
        """
        self.game_pk = game_pk
        self.client = client
        self.commentator = commentator
        self.poll_interval = poll_interval
        self.conversation_id = conversation_id

        self.cursor = PollCursor()
        self.queue = EventQueue()
        self.last_timestamp: str | None = None

        self.registry = SubscriberRegistry(
            on_idle=self._stop,
            name=f"game {game_pk}",
        )
        self._subscribers: list[LiveFeedSubscription] = []
        self._task: asyncio.Task | None = None
        self.stats = {"ticks": 0, "snapshots": 0, "events_delivered": 0, "errors": 0}

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def subscriber_count(self) -> int:
        return self.registry.count

    def subscribe(self) -> LiveFeedSubscription:
        """Register a new subscriber, starting the polling task if needed.

        Must be called from the event loop.
        """
        subscription = LiveFeedSubscription(self)
        self._subscribers.append(subscription)
        self.registry.register()
        # Also restarts a task that ended on an error
        self._ensure_running()
        return subscription

    def unsubscribe(self, subscription: LiveFeedSubscription) -> None:
        if subscription not in self._subscribers:
            return
        self._subscribers.remove(subscription)
        self.registry.deregister()

    def reset(self) -> None:
        """Forget all polling progress for the game."""
        self.cursor.reset()
        self.queue.clear()
        self.last_timestamp = None

    def _ensure_running(self) -> None:
        if self.is_polling:
            return
        self._task = asyncio.get_running_loop().create_task(
            self.run(), name=f"live-feed-{self.game_pk}"
        )

    def _stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.reset()

    async def aclose(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _is_current(self, generation: int) -> bool:
        return self.registry.is_active and self.registry.generation == generation

    async def run(self) -> None:
        """Polling loop: first tick immediately, then every ``poll_interval``."""
        logger.info(f"Game {self.game_pk}: starting live feed polling every {self.poll_interval}s")

        try:
            while self.registry.is_active:
                try:
                    event = await self.tick()
                except Exception as e:
                    self.stats["errors"] += 1
                    logger.error(f"Error in live feed stream for game {self.game_pk}: {e}")
                    self._broadcast(StreamFrame("error", e))
                    return

                if event is not None:
                    self._broadcast(StreamFrame(LIVE_EVENT, event))
                    self.stats["events_delivered"] += 1

                await asyncio.sleep(self.poll_interval)

            logger.info(f"Game {self.game_pk}: live feed stream completed")
        except asyncio.CancelledError:
            logger.info(f"Game {self.game_pk}: live feed polling cancelled")
            raise

    async def tick(self) -> GameEvent | None:
        """Run one polling step.

        Returns:
            The event to deliver this tick, or None

        Raises:
            UpstreamUnavailable: If a timestamp list or snapshot fetch fails
            EnrichmentFailure: If commentary generation fails
        """
        generation = self.registry.generation
        if not self._is_current(generation):
            return None

        self.stats["ticks"] += 1

        if self.queue:
            return self.queue.poll()

        if self.cursor.needs_refresh:
            timestamps = await asyncio.to_thread(self.client.list_timestamps, self.game_pk)
            if not self._is_current(generation):
                return None
            timestamp = self.cursor.refresh(timestamps, self.last_timestamp)
        else:
            timestamp = self.cursor.advance()

        if timestamp is None:
            return None

        if timestamp == self.last_timestamp:
            logger.debug(f"Game {self.game_pk}: timestamp {timestamp} already processed")
            return None

        try:
            feed = await asyncio.to_thread(self.client.get_snapshot, self.game_pk, timestamp)
            if not self._is_current(generation):
                return None
            self.stats["snapshots"] += 1

            events = await self._enrich_snapshot(feed, timestamp, generation)
        except Exception:
            # Not consumed: hand the same timestamp out again on the next tick
            if self._is_current(generation):
                self.cursor.rewind()
            raise

        if events is None:
            return None

        self.last_timestamp = timestamp
        if not events:
            return None

        self.queue.extend(events[1:])
        return events[0]

    async def _enrich_snapshot(
        self,
        feed: dict[str, Any],
        timestamp: str,
        generation: int,
    ) -> list[GameEvent] | None:
        """Extract, validate and enrich every play of a snapshot, in order.

        Returns None when the subscribers went away part way through.
        """
        game_data = feed.get("gameData", {})
        plays = feed.get("liveData", {}).get("plays", {}).get("allPlays") or []
        events = []

        for play in plays:
            candidate = PlayExtractor.to_event(play, game_data, timestamp)
            if not PlayExtractor.is_valid(candidate):
                continue

            if not self._is_current(generation):
                return None

            context = json.dumps(PlayExtractor.live_context(play, feed))
            commentary = await asyncio.to_thread(
                self.commentator.generate, self.conversation_id, context
            )
            if not self._is_current(generation):
                return None

            events.append(candidate.enriched(commentary))
            logger.info(f"Received game event: {candidate.type} at timestamp: {timestamp}")

        return events

    def _broadcast(self, frame: StreamFrame) -> None:
        for subscription in list(self._subscribers):
            subscription.push(frame)


class LiveFeedHub:
    """Arena of per-game aggregators indexed by game_pk."""

    def __init__(
        self,
        client: GumboClient,
        commentator: CommentaryGenerator,
        poll_interval: float = 60,
        conversation_id: str = "riaz",
        default_game_pk: int | None = None,
    ):
        self.client = client
        self.commentator = commentator
        self.poll_interval = poll_interval
        self.conversation_id = conversation_id
        self.default_game_pk = default_game_pk
        self._feeds: dict[int, LiveFeedAggregator] = {}

    def get(self, game_pk: int) -> LiveFeedAggregator:
        """Get or create the aggregator for a game."""
        feed = self._feeds.get(game_pk)
        if feed is None:
            feed = LiveFeedAggregator(
                game_pk,
                self.client,
                self.commentator,
                poll_interval=self.poll_interval,
                conversation_id=self.conversation_id,
            )
            self._feeds[game_pk] = feed
        return feed

    def subscribe(self, game_pk: int | None = None) -> LiveFeedSubscription:
        """Subscribe to a game's live feed (the default game if None)."""
        game_pk = game_pk if game_pk is not None else self.default_game_pk
        if game_pk is None:
            raise ValueError("No game_pk given and no default game configured")
        return self.get(game_pk).subscribe()

    def active_games(self) -> list[int]:
        return [pk for pk, feed in self._feeds.items() if feed.registry.is_active]

    async def close(self) -> None:
        """Stop every polling task."""
        await asyncio.gather(*(feed.aclose() for feed in self._feeds.values()))
