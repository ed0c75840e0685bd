"""Error kinds raised by the live feed and replay flows.

Invalid events are filtered before delivery and a prediction timeout is a
normal branch (``None``), so neither has an exception type here.
"""


class LiveFeedError(Exception):
    """Base class for live feed and replay errors."""


class UpstreamUnavailable(LiveFeedError):
    """Upstream fetch failed or returned no usable data."""

    def __init__(self, message: str, game_pk: int | None = None):
        super().__init__(message)
        self.game_pk = game_pk


class EnrichmentFailure(LiveFeedError):
    """Commentary generation failed."""


class MissingCurrentPlay(LiveFeedError):
    """Live status query found no current play for the game."""

    def __init__(self, game_pk: int):
        super().__init__(f"No current play data available for game {game_pk}")
        self.game_pk = game_pk
