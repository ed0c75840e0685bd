"""Live MLB game commentary: polled GUMBO feed, enrichment and prediction replays."""

from .config import ServiceConfig, load_config
from .errors import EnrichmentFailure, LiveFeedError, MissingCurrentPlay, UpstreamUnavailable
from .models import GameEvent, GameEventWithStatus, LiveStatus, Prediction, StreamFrame, TeamStatus
from .service import GameService

__version__ = "0.1.0"

__all__ = [
    "GameService",
    "ServiceConfig",
    "load_config",
    "LiveFeedError",
    "UpstreamUnavailable",
    "EnrichmentFailure",
    "MissingCurrentPlay",
    "GameEvent",
    "GameEventWithStatus",
    "LiveStatus",
    "Prediction",
    "StreamFrame",
    "TeamStatus",
]
