"""MLB Stats API (GUMBO) client for the live feed and replay flows.

Endpoints used:
- liveTimestampv11: All timestamps recorded for a game
- liveGameV1: Full game feed, optionally at a specific timecode
- schedule: Games between two dates
"""

import logging
import threading
import time
from datetime import date
from typing import Any, Optional

from pymlb_statsapi import StatsAPI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
    wait_incrementing,
)

from ..config import BackoffStrategy, RetryConfig
from ..errors import UpstreamUnavailable
from ..extractors import GameInfo, ScheduleExtractor

logger = logging.getLogger(__name__)


class GumboClient:
    """Stateless wrapper around pymlb_statsapi for GUMBO feed access.

    Features:
    - Rate limiting (requests per minute)
    - Retry logic with configurable backoff
    - Uniform ``UpstreamUnavailable`` on failure

    Usage:
        >>> client = GumboClient()
        >>> timestamps = client.list_timestamps(775296)
        >>> feed = client.get_snapshot(775296, timestamps[-1])
    """

    def __init__(
        self,
        api: StatsAPI | None = None,
        retry_config: RetryConfig | None = None,
        rate_limit: Optional[int] = 30,
        sport_id: int = 1,
    ):
        """Initialize the client.

        Args:
            api: StatsAPI instance (creates new one if None)
            retry_config: Retry policy for transient failures
            rate_limit: Max requests per minute (None disables limiting)
            sport_id: Sport ID used for schedule queries (1 = MLB)
        """
        self.api = api or StatsAPI()
        self.retry_config = retry_config or RetryConfig()
        self.rate_limit = rate_limit
        self.sport_id = sport_id

        # Rate limiting state
        self._last_request_time: Optional[float] = None
        self._request_count = 0
        self._minute_start_time = time.time()
        self._rate_lock = threading.Lock()

    def list_timestamps(self, game_pk: int) -> list[str]:
        """Get all timestamps recorded for a game, oldest first.

        Args:
            game_pk: Game primary key

        Returns:
            List of timestamp strings (YYYYMMDD_HHMMSS_mmm format)
        """
        data = self._call("liveTimestampv11", game_pk=game_pk)

        if not isinstance(data, list):
            raise UpstreamUnavailable(
                f"Unexpected timestamps payload for game {game_pk}: {type(data).__name__}",
                game_pk,
            )
        return [str(ts) for ts in data]

    def get_snapshot(self, game_pk: int, timestamp: str | None = None) -> dict[str, Any]:
        """Get the full game feed, at ``timestamp`` or latest.

        Args:
            game_pk: Game primary key
            timestamp: Specific timecode (None for latest)

        Returns:
            Game feed document (gameData, liveData, metaData)
        """
        if timestamp:
            data = self._call("liveGameV1", game_pk=game_pk, timecode=timestamp)
        else:
            data = self._call("liveGameV1", game_pk=game_pk)

        if not isinstance(data, dict) or not data.get("liveData"):
            raise UpstreamUnavailable(f"Unable to fetch game data for game {game_pk}", game_pk)
        return data

    def get_full_play_history(self, game_pk: int) -> list[dict[str, Any]]:
        """Get every play of a game in upstream order."""
        feed = self.get_snapshot(game_pk)
        plays = feed["liveData"].get("plays", {}).get("allPlays")
        if plays is None:
            raise UpstreamUnavailable(f"Game data for game {game_pk} is incomplete", game_pk)
        return plays

    def get_schedule(self, start_date: date | str, end_date: date | str) -> list[GameInfo]:
        """Get games scheduled between two dates (inclusive).

        Args:
            start_date: First date (date or YYYY-MM-DD)
            end_date: Last date (date or YYYY-MM-DD)

        Returns:
            List of GameInfo
        """
        start = start_date if isinstance(start_date, str) else start_date.isoformat()
        end = end_date if isinstance(end_date, str) else end_date.isoformat()

        self._apply_rate_limit()
        try:
            response = self._build_retry_decorator()(self.api.Schedule.schedule)(
                sportId=self.sport_id,
                season=start[:4],
                startDate=start,
                endDate=end,
            )
            data = response.json()
        except Exception as e:
            logger.error(f"Unexpected error while fetching MLB schedule: {e}")
            raise UpstreamUnavailable("Failed to fetch MLB schedule") from e

        return ScheduleExtractor.extract_games(data)

    def _call(self, method_name: str, **params) -> Any:
        """Call a Game endpoint method with rate limiting and retries."""
        game_pk = params.get("game_pk")
        self._apply_rate_limit()
        method = getattr(self.api.Game, method_name)
        try:
            response = self._build_retry_decorator()(method)(**params)
            return response.json()
        except Exception as e:
            logger.error(f"Game {game_pk}: {method_name} failed: {e}")
            raise UpstreamUnavailable(f"{method_name} failed for game {game_pk}: {e}", game_pk) from e

    def _apply_rate_limit(self) -> None:
        """Apply per-minute rate limiting."""
        if not self.rate_limit:
            return

        # Calls arrive from worker threads of concurrent flows
        with self._rate_lock:
            current_time = time.time()

            # Reset counter every minute
            if current_time - self._minute_start_time >= 60:
                self._request_count = 0
                self._minute_start_time = current_time

            if self._request_count >= self.rate_limit:
                sleep_time = 60 - (current_time - self._minute_start_time)
                if sleep_time > 0:
                    logger.debug(f"Rate limit reached, sleeping {sleep_time:.1f}s")
                    time.sleep(sleep_time)
                self._request_count = 0
                self._minute_start_time = time.time()

            self._request_count += 1
            self._last_request_time = time.time()

    def _build_retry_decorator(self):
        """Build retry decorator based on retry configuration."""
        config = self.retry_config

        if config.backoff == BackoffStrategy.EXPONENTIAL:
            wait_strategy = wait_exponential(multiplier=config.initial_delay, max=config.max_delay)
        elif config.backoff == BackoffStrategy.LINEAR:
            wait_strategy = wait_incrementing(
                start=config.initial_delay,
                increment=config.initial_delay,
                max=config.max_delay,
            )
        else:  # CONSTANT
            wait_strategy = wait_fixed(config.initial_delay)

        return retry(
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            stop=stop_after_attempt(config.max_attempts),
            wait=wait_strategy,
            reraise=True,
        )
