"""Domain records delivered to live feed and replay subscribers."""

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any

ADVISORY_EVENT = "game_advisory"
STATUS_EVENT = "game_status"


@dataclass(frozen=True)
class GameEvent:
    """One play extracted from a GUMBO feed.

    ``description`` holds the raw play description until the event is
    enriched, and the generated commentary afterwards.
    """

    type: str
    description: str | None = None
    inning: int = 0
    is_top_inning: bool = False
    batter_name: str | None = None
    pitcher_name: str | None = None
    result: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    home_score: int = 0
    away_score: int = 0
    balls: int = 0
    strikes: int = 0
    outs: int = 0
    timestamp: str | None = None

    def enriched(self, commentary: str, **changes: Any) -> "GameEvent":
        """Return a copy carrying the commentary text as its description."""
        return replace(self, description=commentary, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TeamStatus:
    """Team line of a live status snapshot."""

    name: str | None
    record: str
    score: int


@dataclass(frozen=True)
class LiveStatus:
    """Point-in-time game status, recomputed per play."""

    inning: str
    away_team: TeamStatus
    home_team: TeamStatus
    current_pitcher: str | None
    pitch_count: int
    type: str = "MLB • LIVE"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Prediction:
    """A user's free-text prediction for a game."""

    prediction: str
    prediction_time: datetime
    play_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "prediction": self.prediction,
            "predictionTime": self.prediction_time.isoformat(),
            "playIndex": self.play_index,
        }


@dataclass(frozen=True)
class GameEventWithStatus:
    """Replay payload: enriched play, derived status and the active prediction."""

    event: GameEvent
    status: LiveStatus
    user_prediction: Prediction | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.to_dict(),
            "status": self.status.to_dict(),
            "userPrediction": self.user_prediction.to_dict() if self.user_prediction else None,
        }


@dataclass(frozen=True)
class StreamFrame:
    """A named frame pushed to a subscriber."""

    event: str
    data: Any = None
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.event in ("complete", "error")

    def payload(self) -> Any:
        if hasattr(self.data, "to_dict"):
            return self.data.to_dict()
        if isinstance(self.data, BaseException):
            return {"error": type(self.data).__name__, "message": str(self.data)}
        return self.data

    def to_sse(self) -> str:
        """Render the frame in server-sent-events text form."""
        payload = self.payload()
        data = payload if isinstance(payload, str) else json.dumps(payload, default=str)
        return f"event: {self.event}\ndata: {data}\n\n"
