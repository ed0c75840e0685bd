"""Pytest configuration and fixtures for all tests."""

import copy
import json
import threading
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from mlb_live_commentary.config import ServiceConfig
from mlb_live_commentary.errors import EnrichmentFailure
from mlb_live_commentary.upstream.client import GumboClient

GAME_PK = 775296


# ============================================================================
# GUMBO Feed Fixtures
# ============================================================================

def make_play(
    event_type: str | None = "single",
    description: str | None = "Shohei Ohtani singles on a line drive to right field.",
    inning: int = 1,
    is_top: bool = True,
    away_score: int | None = 0,
    home_score: int | None = 0,
    batter: str = "Shohei Ohtani",
    pitcher: str = "Gerrit Cole",
    pitches: int = 3,
) -> dict[str, Any]:
    """Build one liveData.plays.allPlays record."""
    result: dict[str, Any] = {"type": "atBat"}
    if event_type is not None:
        result["eventType"] = event_type
        result["event"] = event_type.replace("_", " ").title()
    if description is not None:
        result["description"] = description
    if away_score is not None:
        result["awayScore"] = away_score
    if home_score is not None:
        result["homeScore"] = home_score

    return {
        "result": result,
        "about": {"inning": inning, "isTopInning": is_top, "halfInning": "top" if is_top else "bottom"},
        "matchup": {
            "batter": {"id": 660271, "fullName": batter},
            "pitcher": {"id": 543037, "fullName": pitcher},
            "batSide": {"code": "L", "description": "Left"},
            "pitchHand": {"code": "R", "description": "Right"},
        },
        "count": {"balls": 1, "strikes": 1, "outs": 0},
        "playEvents": [{"isPitch": True} for _ in range(pitches)] + [{"isPitch": False}],
    }


@pytest.fixture
def play_factory() -> Callable[..., dict[str, Any]]:
    """Factory for play records."""
    return make_play


@pytest.fixture
def sample_plays() -> list[dict[str, Any]]:
    """Three plays: a single, an empty advisory (invalid) and a home run."""
    return [
        make_play(),
        make_play(event_type=None, description=None, away_score=None, home_score=None),
        make_play(
            event_type="home_run",
            description="Freddie Freeman homers (1) on a fly ball to right field.",
            batter="Freddie Freeman",
            away_score=2,
            home_score=0,
            pitches=5,
        ),
    ]


@pytest.fixture
def sample_feed(sample_plays) -> dict[str, Any]:
    """GUMBO liveGameV1 document for a Dodgers at Yankees game."""
    return {
        "gamePk": GAME_PK,
        "gameData": {
            "datetime": {"dateTime": "2024-10-30T00:08:00Z", "officialDate": "2024-10-29"},
            "teams": {
                "away": {"name": "Los Angeles Dodgers", "record": {"wins": 98, "losses": 64}},
                "home": {"name": "New York Yankees", "record": {"wins": 94, "losses": 68}},
            },
        },
        "liveData": {
            "plays": {
                "allPlays": copy.deepcopy(sample_plays),
                "currentPlay": copy.deepcopy(sample_plays[-1]),
            },
            "linescore": {
                "currentInning": 1,
                "isTopInning": True,
                "teams": {"away": {"runs": 2}, "home": {"runs": 0}},
                "defense": {"pitcher": {"fullName": "Gerrit Cole"}},
                "offense": {"batter": {"fullName": "Freddie Freeman"}},
            },
        },
    }


@pytest.fixture
def schedule_response() -> dict[str, Any]:
    """Schedule.schedule payload with two games on one date."""
    return {
        "dates": [
            {
                "date": "2024-10-29",
                "games": [
                    {
                        "gamePk": GAME_PK,
                        "gameDate": "2024-10-30T00:08:00Z",
                        "status": {
                            "statusCode": "F",
                            "detailedState": "Final",
                            "abstractGameState": "Final",
                        },
                        "teams": {
                            "away": {"team": {"id": 119, "name": "Los Angeles Dodgers"}},
                            "home": {"team": {"id": 147, "name": "New York Yankees"}},
                        },
                        "venue": {"id": 3313},
                    },
                    {
                        "gamePk": 775297,
                        "gameDate": "2024-10-31T00:08:00Z",
                        "status": {
                            "statusCode": "I",
                            "detailedState": "In Progress",
                            "abstractGameState": "Live",
                        },
                        "teams": {
                            "away": {"team": {"id": 119, "name": "Los Angeles Dodgers"}},
                            "home": {"team": {"id": 147, "name": "New York Yankees"}},
                        },
                        "venue": {"id": 3313},
                    },
                ],
            }
        ]
    }


# ============================================================================
# Collaborator Fixtures
# ============================================================================

class RecordingCommentator:
    """Commentary generator that prefixes the play description and records calls."""

    def __init__(self, fail_on: Callable[[dict[str, Any]], bool] | None = None):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def generate(self, conversation_id: str, context_json: str) -> str:
        context = json.loads(context_json)
        with self._lock:
            self.calls.append((conversation_id, context))
        if self.fail_on and self.fail_on(context):
            raise EnrichmentFailure("commentary unavailable")
        return f"Coach: {context.get('playDescription')}"


@pytest.fixture
def commentator() -> RecordingCommentator:
    return RecordingCommentator()


@pytest.fixture
def failing_commentator() -> Callable[..., RecordingCommentator]:
    """Factory for commentators that fail when ``fail_on(context)`` is true."""
    return lambda fail_on: RecordingCommentator(fail_on=fail_on)


@pytest.fixture
def mock_client(sample_feed) -> MagicMock:
    """GumboClient double serving ``sample_feed`` for every timestamp."""
    client = MagicMock(spec=GumboClient)
    client.list_timestamps.return_value = ["20241029_233000_000", "20241029_233100_000"]
    client.get_snapshot.return_value = sample_feed
    client.get_full_play_history.return_value = sample_feed["liveData"]["plays"]["allPlays"]
    return client


@pytest.fixture
def fast_config() -> ServiceConfig:
    """Service configuration with sub-second timings and no rate limiting."""
    return ServiceConfig(
        poll_interval_seconds=0.01,
        replay_cadence_seconds=0,
        prediction_timeout_seconds=0.5,
        rate_limit=None,
    )
