"""Inbound surface of the live commentary service.

``GameService`` wires the upstream client, the commentator, the per-game
live feed hub and the prediction store together, and exposes the operations
callers (CLI, HTTP layer) use:

- subscribe_live_feed: Follow a game's live feed
- submit_prediction: Record a user's prediction
- replay: Prediction-gated replay of a completed game
- current_live_status: Point-in-time LiveStatus
- get_schedule: Games between two dates
- chat: Direct commentary call
"""

import asyncio
import logging
from datetime import date

from .commentary import CommentaryGenerator, create_commentator
from .config import ServiceConfig
from .errors import LiveFeedError, MissingCurrentPlay
from .extractors import GameInfo, PlayExtractor
from .feed import LiveFeedHub, LiveFeedSubscription
from .models import LiveStatus, Prediction
from .replay import PredictionStore, ReplayStream, ReplaySynchronizer
from .replay.predictions import PredictionKey
from .upstream import GumboClient

logger = logging.getLogger(__name__)


class GameService:
    """Live feed, prediction and replay operations for MLB games.

    Usage:
        >>> service = GameService(ServiceConfig.from_env())
        >>> async with service.subscribe_live_feed(775296) as feed:
        ...     async for frame in feed:
        ...         print(frame.data.description)
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        client: GumboClient | None = None,
        commentator: CommentaryGenerator | None = None,
    ):
        """Initialize the service.

        Args:
            config: Service configuration (uses defaults if None)
            client: Upstream client (built from config if None)
            commentator: Commentary generator (built from config if None)
        """
        self.config = config or ServiceConfig()
        self.client = client or GumboClient(
            retry_config=self.config.retry,
            rate_limit=self.config.rate_limit,
            sport_id=self.config.sport_id,
        )
        self.commentator = commentator or create_commentator(self.config.commentary)
        self.predictions = PredictionStore()
        self.hub = LiveFeedHub(
            self.client,
            self.commentator,
            poll_interval=self.config.poll_interval_seconds,
            conversation_id=self.config.conversation_id,
            default_game_pk=self.config.default_game_pk,
        )
        self._replays: dict[PredictionKey, ReplaySynchronizer] = {}

    def subscribe_live_feed(self, game_pk: int | None = None) -> LiveFeedSubscription:
        """Subscribe to a game's live feed (the configured default if None)."""
        return self.hub.subscribe(game_pk)

    async def submit_prediction(self, user_id: str, game_pk: int, text: str) -> Prediction:
        """Save a prediction and wake a replay waiting for it.

        The play index comes from the user's running replay of the game when
        there is one; otherwise the game's play history is fetched.

        Raises:
            ValueError: If the prediction text is blank
        """
        if text is None or not text.strip():
            raise ValueError("Prediction text must not be empty")

        replay = self._replays.get(PredictionStore.key(user_id, game_pk))
        if replay is not None:
            play_index = max(replay.play_index, 0)
        else:
            play_index = await self._current_play_index(game_pk)

        return self.predictions.save(user_id, game_pk, text.strip(), play_index)

    def replay(self, user_id: str, game_pk: int) -> ReplayStream:
        """Start a prediction-gated replay for one user. Must run on the event loop."""
        key = PredictionStore.key(user_id, game_pk)
        synchronizer = ReplaySynchronizer(
            user_id,
            game_pk,
            self.client,
            self.commentator,
            self.predictions,
            prediction_timeout=self.config.prediction_timeout_seconds,
            cadence=self.config.replay_cadence_seconds,
            conversation_id=self.config.conversation_id,
        )
        self._replays[key] = synchronizer

        def _forget() -> None:
            if self._replays.get(key) is synchronizer:
                del self._replays[key]

        logger.info(f"Starting replay of game {game_pk} for user {user_id}")
        return ReplayStream(synchronizer, on_close=_forget)

    async def current_live_status(self, game_pk: int) -> LiveStatus:
        """Live status at the game's current play.

        Raises:
            UpstreamUnavailable: If the feed cannot be fetched
            MissingCurrentPlay: If the feed has no current play
        """
        feed = await asyncio.to_thread(self.client.get_snapshot, game_pk)

        current_play = feed["liveData"].get("plays", {}).get("currentPlay")
        if not current_play:
            raise MissingCurrentPlay(game_pk)

        line_teams = feed["liveData"].get("linescore", {}).get("teams", {})
        return PlayExtractor.live_status(
            feed,
            current_play,
            away_score=line_teams.get("away", {}).get("runs", 0),
            home_score=line_teams.get("home", {}).get("runs", 0),
        )

    async def get_schedule(self, start_date: date | str, end_date: date | str) -> list[GameInfo]:
        return await asyncio.to_thread(self.client.get_schedule, start_date, end_date)

    async def chat(self, conversation_id: str, message: str) -> str:
        """Send a free-form message to the commentator."""
        return await asyncio.to_thread(self.commentator.generate, conversation_id, message)

    async def close(self) -> None:
        await self.hub.close()
        close = getattr(self.commentator, "close", None)
        if close is not None:
            close()

    async def _current_play_index(self, game_pk: int) -> int:
        try:
            plays = await asyncio.to_thread(self.client.get_full_play_history, game_pk)
        except LiveFeedError as e:
            logger.error(f"Error getting current play index for game {game_pk}: {e}")
            return 0
        return max(len(plays) - 1, 0)
