"""In-memory store of user predictions with bounded waiting.

One prediction is kept per (user, game); saving replaces it. A replay that
needs the first prediction waits on a future that the next ``save`` resolves,
or gives up after a timeout and proceeds without one.
"""

import asyncio
import logging
import threading
from datetime import datetime

from ..models import Prediction

logger = logging.getLogger(__name__)

PredictionKey = tuple[str, str]


class PredictionStore:
    """Latest prediction per (user, game) plus pending waiters.

    ``save`` may be called from any thread; waiters are resolved on their own
    event loop.

    Usage:
        >>> store = PredictionStore()
        >>> prediction = await store.wait_for("u1", "775296", timeout=60)
        >>> # elsewhere: store.save("u1", "775296", "Ohtani homers", play_index=12)
    """

    def __init__(self):
        self._predictions: dict[PredictionKey, Prediction] = {}
        self._pending: dict[PredictionKey, list[asyncio.Future]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(user_id: str, game_id: str | int) -> PredictionKey:
        return (str(user_id), str(game_id))

    def get(self, user_id: str, game_id: str | int) -> Prediction | None:
        with self._lock:
            return self._predictions.get(self.key(user_id, game_id))

    def pending_count(self, user_id: str, game_id: str | int) -> int:
        """Number of callers currently waiting for this key."""
        with self._lock:
            return len(self._pending.get(self.key(user_id, game_id), ()))

    def save(
        self,
        user_id: str,
        game_id: str | int,
        text: str,
        play_index: int,
    ) -> Prediction:
        """Store a prediction, replacing any previous one, and wake waiters.

        Args:
            user_id: User making the prediction
            game_id: Game the prediction is about
            text: Free-text prediction
            play_index: Play index the prediction was made against

        Returns:
            The stored Prediction
        """
        key = self.key(user_id, game_id)
        prediction = Prediction(prediction=text, prediction_time=datetime.now(), play_index=play_index)

        with self._lock:
            self._predictions[key] = prediction
            waiters = list(self._pending.get(key, ()))

        logger.info(f"New prediction saved for user {user_id} at play index {play_index}: {text}")

        for future in waiters:
            loop = future.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(self._resolve, key, future)

        return prediction

    def _resolve(self, key: PredictionKey, future: asyncio.Future) -> None:
        if future.done():
            return
        # Latest value wins when several saves land before the waiter runs
        with self._lock:
            latest = self._predictions.get(key)
        if latest is not None:
            future.set_result(latest)

    async def wait_for(
        self,
        user_id: str,
        game_id: str | int,
        timeout: float,
    ) -> Prediction | None:
        """Return the current prediction, or wait up to ``timeout`` for one.

        Args:
            user_id: User expected to predict
            game_id: Game the prediction is about
            timeout: Seconds to wait

        Returns:
            Prediction, or None if none arrived in time
        """
        key = self.key(user_id, game_id)
        future = asyncio.get_running_loop().create_future()

        with self._lock:
            existing = self._predictions.get(key)
            if existing is not None:
                return existing
            self._pending.setdefault(key, []).append(future)

        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No prediction received within timeout for user {user_id} game {game_id}")
            return None
        finally:
            with self._lock:
                waiters = self._pending.get(key, [])
                if future in waiters:
                    waiters.remove(future)
                if not waiters:
                    self._pending.pop(key, None)

    def clear(self) -> None:
        """Drop every prediction (pending waiters keep waiting)."""
        with self._lock:
            self._predictions.clear()
