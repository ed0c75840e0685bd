"""Prediction-gated replay of a completed game.

States per (user, game) replay:

    AWAITING_PREDICTION → STREAMING → COMPLETED
                              ↘ FAILED (upstream error)

The replay asks for a prediction when none exists and waits for it with a
bounded timeout. It then walks the game's plays in upstream order, emitting
one enriched play (with a derived LiveStatus and the user's latest
prediction) per cadence interval.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from ..commentary import CommentaryGenerator
from ..errors import EnrichmentFailure, LiveFeedError
from ..extractors import PlayExtractor
from ..models import GameEventWithStatus, Prediction, StreamFrame
from ..upstream.client import GumboClient
from .predictions import PredictionStore

logger = logging.getLogger(__name__)

REQUEST_PREDICTION = "request_prediction"
METADATA = "metadata"
PLAY = "play"
COMPLETE = "complete"
ERROR = "error"


class ReplayState(str, Enum):
    """Replay lifecycle states."""

    AWAITING_PREDICTION = "awaiting_prediction"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class ReplaySynchronizer:
    """Drives one user's replay of one game.

    Usage:
        >>> replay = ReplaySynchronizer("u1", 775296, client, coach, store)
        >>> await replay.run(frames.append)
    """

    def __init__(
        self,
        user_id: str,
        game_pk: int,
        client: GumboClient,
        commentator: CommentaryGenerator,
        predictions: PredictionStore,
        prediction_timeout: float = 60,
        cadence: float = 60,
        conversation_id: str = "riaz",
    ):
        """Initialize the replay.

        Args:
            user_id: User the replay streams to
            game_pk: Game to replay
            client: Upstream GUMBO client
            commentator: Commentary generator used to enrich plays
            predictions: Shared prediction store
            prediction_timeout: Seconds to wait for the first prediction
            cadence: Seconds between replayed plays
            conversation_id: Commentary conversation key
        """
        self.user_id = user_id
        self.game_pk = game_pk
        self.client = client
        self.commentator = commentator
        self.predictions = predictions
        self.prediction_timeout = prediction_timeout
        self.cadence = cadence
        self.conversation_id = conversation_id

        self.state = ReplayState.AWAITING_PREDICTION
        self.play_index = -1
        self.plays_emitted = 0
        self.plays_skipped = 0

    async def run(self, emit: Callable[[StreamFrame], None]) -> ReplayState:
        """Run the replay to completion, sending frames through ``emit``.

        Returns:
            Final state (COMPLETED or FAILED)
        """
        prediction = await self._await_prediction(emit)

        self.state = ReplayState.STREAMING
        try:
            feed = await asyncio.to_thread(self.client.get_snapshot, self.game_pk)
            plays = feed["liveData"].get("plays", {}).get("allPlays")
            if plays is None:
                raise LiveFeedError(f"Game data for game {self.game_pk} is incomplete")
        except LiveFeedError as e:
            logger.error(f"Error streaming game {self.game_pk}: {e}")
            self.state = ReplayState.FAILED
            emit(StreamFrame(ERROR, e))
            return self.state

        metadata = PlayExtractor.game_metadata(feed)
        if prediction is not None:
            metadata["userPrediction"] = prediction.prediction
        emit(StreamFrame(METADATA, metadata))

        await self._stream_plays(plays, feed, emit)

        self.state = ReplayState.COMPLETED
        emit(StreamFrame(COMPLETE, "Game replay completed"))
        logger.info(
            f"Replay of game {self.game_pk} for user {self.user_id} completed: "
            f"{self.plays_emitted} plays, {self.plays_skipped} skipped"
        )
        return self.state

    async def _await_prediction(self, emit: Callable[[StreamFrame], None]) -> Prediction | None:
        prediction = self.predictions.get(self.user_id, self.game_pk)
        if prediction is not None:
            return prediction

        emit(StreamFrame(REQUEST_PREDICTION, "Please make your prediction for the game"))
        return await self.predictions.wait_for(
            self.user_id, self.game_pk, timeout=self.prediction_timeout
        )

    async def _stream_plays(
        self,
        plays: list[dict[str, Any]],
        feed: dict[str, Any],
        emit: Callable[[StreamFrame], None],
    ) -> None:
        away_score = home_score = 0

        for index, play in enumerate(plays):
            self.play_index = index
            away_score, home_score = update_scores(play, away_score, home_score)

            try:
                payload = await self._build_play(play, feed, away_score, home_score)
            except EnrichmentFailure as e:
                logger.error(f"Error processing play {index} of game {self.game_pk}: {e}")
                self.plays_skipped += 1
            else:
                emit(StreamFrame(PLAY, payload))
                self.plays_emitted += 1

            if index < len(plays) - 1:
                await asyncio.sleep(self.cadence)

    async def _build_play(
        self,
        play: dict[str, Any],
        feed: dict[str, Any],
        away_score: int,
        home_score: int,
    ) -> GameEventWithStatus:
        # Latest prediction, which may have changed since the replay started
        prediction = self.predictions.get(self.user_id, self.game_pk)

        context = PlayExtractor.replay_context(play, feed, away_score, home_score, prediction)
        commentary = await asyncio.to_thread(
            self.commentator.generate, self.conversation_id, json.dumps(context)
        )

        event = PlayExtractor.to_event(play, feed.get("gameData")).enriched(
            commentary, home_score=home_score, away_score=away_score
        )
        return GameEventWithStatus(
            event=event,
            status=PlayExtractor.live_status(feed, play, away_score, home_score),
            user_prediction=prediction,
        )


def update_scores(play: dict[str, Any], away_score: int, home_score: int) -> tuple[int, int]:
    """Carry running scores forward; a play without a score keeps the totals."""
    result = play.get("result") or {}
    if result.get("awayScore") is not None:
        away_score = result["awayScore"]
    if result.get("homeScore") is not None:
        home_score = result["homeScore"]
    return away_score, home_score


class ReplayStream:
    """Subscriber handle for one replay.

    Iterating yields frames until the terminal ``complete`` or ``error``
    frame. Closing before that cancels the replay; commentary calls already
    in flight finish in their worker thread and their results are dropped.
    """

    def __init__(self, synchronizer: ReplaySynchronizer, on_close: Callable[[], None] | None = None):
        self.synchronizer = synchronizer
        self._frames: asyncio.Queue[StreamFrame] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False
        self._finished = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"replay-{synchronizer.user_id}-{synchronizer.game_pk}"
        )

    @property
    def state(self) -> ReplayState:
        return self.synchronizer.state

    def _emit(self, frame: StreamFrame) -> None:
        if not self._closed:
            self._frames.put_nowait(frame)

    async def _run(self) -> None:
        try:
            await self.synchronizer.run(self._emit)
        except asyncio.CancelledError:
            logger.info(
                f"Replay of game {self.synchronizer.game_pk} for user "
                f"{self.synchronizer.user_id} cancelled"
            )
            raise
        except Exception as e:
            logger.exception(f"Replay of game {self.synchronizer.game_pk} crashed: {e}")
            self.synchronizer.state = ReplayState.FAILED
            self._emit(StreamFrame(ERROR, e))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._task.done():
            self._task.cancel()
        if self._on_close:
            self._on_close()

    async def wait_closed(self) -> None:
        """Wait for the replay task to finish after ``close``."""
        try:
            await self._task
        except asyncio.CancelledError:
            pass

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
