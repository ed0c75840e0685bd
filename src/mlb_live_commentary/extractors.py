"""Data extractors for GUMBO game feeds and schedules.

- PlayExtractor: Build GameEvents, commentary contexts and LiveStatus from plays
- ScheduleExtractor: Extract game info from schedule data
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from .models import ADVISORY_EVENT, STATUS_EVENT, GameEvent, LiveStatus, Prediction, TeamStatus


@dataclass
class GameInfo:
    """Game information extracted from schedule."""

    game_pk: int
    game_date: date | None
    game_datetime: datetime | None = None
    status_code: str | None = None
    detailed_state: str | None = None
    abstract_game_state: str | None = None
    home_team_id: int | None = None
    away_team_id: int | None = None
    home_team: str | None = None
    away_team: str | None = None
    venue_id: int | None = None

    @property
    def is_live(self) -> bool:
        """Check if game is currently live."""
        return self.abstract_game_state == "Live"

    @property
    def is_final(self) -> bool:
        """Check if game is final."""
        return self.abstract_game_state == "Final"


class PlayExtractor:
    """Turn GUMBO play records into domain events and commentary context."""

    @staticmethod
    def to_event(
        play: dict[str, Any],
        game_data: dict[str, Any] | None = None,
        timestamp: str | None = None,
    ) -> GameEvent:
        """Convert one play from liveData.plays.allPlays into a GameEvent.

        Args:
            play: Raw play record
            game_data: gameData section of the same feed (for team names)
            timestamp: Snapshot timestamp the play was read from

        Returns:
            Unenriched GameEvent
        """
        result = play.get("result") or {}
        about = play.get("about") or {}
        matchup = play.get("matchup") or {}
        count = play.get("count") or {}
        teams = (game_data or {}).get("teams", {})

        event_type = result.get("eventType")
        home_score = result.get("homeScore")
        away_score = result.get("awayScore")

        return GameEvent(
            type=event_type.lower() if event_type is not None else ADVISORY_EVENT,
            description=result.get("description"),
            inning=about.get("inning") or 0,
            is_top_inning=bool(about.get("isTopInning")),
            batter_name=(matchup.get("batter") or {}).get("fullName"),
            pitcher_name=(matchup.get("pitcher") or {}).get("fullName"),
            result=result.get("event"),
            home_team=teams.get("home", {}).get("name"),
            away_team=teams.get("away", {}).get("name"),
            home_score=home_score if home_score is not None else 0,
            away_score=away_score if away_score is not None else 0,
            balls=count.get("balls") or 0,
            strikes=count.get("strikes") or 0,
            outs=count.get("outs") or 0,
            timestamp=timestamp,
        )

    @staticmethod
    def is_valid(event: GameEvent) -> bool:
        """Filter out events with no meaningful information."""
        if not event.type:
            return False

        if event.type == ADVISORY_EVENT and not event.description:
            return False

        if event.type == STATUS_EVENT and (not event.home_team or not event.away_team):
            return False

        return True

    @staticmethod
    def live_context(play: dict[str, Any], feed: dict[str, Any]) -> dict[str, Any]:
        """Build the commentary context for a live feed play.

        Inning, score and the current pitcher/batter come from the snapshot's
        linescore, the play itself supplies event, description and count.
        """
        linescore = feed.get("liveData", {}).get("linescore") or {}
        about = play.get("about") or {}
        result = play.get("result") or {}
        matchup = play.get("matchup") or {}
        is_top = bool(about.get("isTopInning"))
        line_teams = linescore.get("teams", {})

        context: dict[str, Any] = {
            "currentInning": linescore.get("currentInning", about.get("inning")),
            "inningState": _half(is_top),
            "isTopInning": is_top,
            "score": {
                "away": line_teams.get("away", {}).get("runs", 0),
                "home": line_teams.get("home", {}).get("runs", 0),
            },
            "awayTeam": _team_name(feed, "away"),
            "homeTeam": _team_name(feed, "home"),
        }

        pitcher = (linescore.get("defense") or {}).get("pitcher")
        if pitcher:
            context["currentPitcher"] = pitcher.get("fullName")
            if matchup.get("pitchHand"):
                context["pitcherHand"] = matchup["pitchHand"].get("description")

        batter = (linescore.get("offense") or {}).get("batter")
        if batter:
            context["currentBatter"] = batter.get("fullName")
            if matchup.get("batSide"):
                context["batterSide"] = matchup["batSide"].get("description")

        context["playEvent"] = result.get("event")
        context["playDescription"] = result.get("description")

        count = play.get("count")
        if count:
            context["count"] = {
                "balls": count.get("balls", 0),
                "strikes": count.get("strikes", 0),
                "outs": count.get("outs", 0),
            }

        return context

    @staticmethod
    def replay_context(
        play: dict[str, Any],
        feed: dict[str, Any],
        away_score: int,
        home_score: int,
        prediction: Prediction | None = None,
    ) -> dict[str, Any]:
        """Build the commentary context for a replayed play.

        Scores are the running totals of the replay, not the final linescore.
        """
        about = play.get("about") or {}
        result = play.get("result") or {}
        matchup = play.get("matchup") or {}

        context: dict[str, Any] = {
            "currentInning": about.get("inning"),
            "isTopInning": bool(about.get("isTopInning")),
            "currentScore": {"away": away_score, "home": home_score},
            "awayTeam": _team_name(feed, "away"),
            "homeTeam": _team_name(feed, "home"),
        }

        pitcher = (matchup.get("pitcher") or {}).get("fullName")
        if pitcher:
            context["currentPitcher"] = pitcher
        batter = (matchup.get("batter") or {}).get("fullName")
        if batter:
            context["currentBatter"] = batter

        context["playEvent"] = result.get("event")
        context["playDescription"] = result.get("description")

        if prediction is not None and prediction.prediction:
            context["userPrediction"] = prediction.prediction

        return context

    @staticmethod
    def live_status(
        feed: dict[str, Any],
        play: dict[str, Any],
        away_score: int,
        home_score: int,
    ) -> LiveStatus:
        """Derive a LiveStatus snapshot for ``play``.

        Args:
            feed: Game feed the play belongs to
            play: Play the status is computed at
            away_score: Away runs at this play
            home_score: Home runs at this play

        Returns:
            LiveStatus
        """
        about = play.get("about") or {}
        pitcher = (play.get("matchup") or {}).get("pitcher") or {}

        return LiveStatus(
            inning=inning_label(bool(about.get("isTopInning")), about.get("inning") or 0),
            away_team=TeamStatus(
                name=_team_name(feed, "away"),
                record=_team_record(feed, "away"),
                score=away_score,
            ),
            home_team=TeamStatus(
                name=_team_name(feed, "home"),
                record=_team_record(feed, "home"),
                score=home_score,
            ),
            current_pitcher=pitcher.get("fullName"),
            pitch_count=pitch_count(play),
        )

    @staticmethod
    def game_metadata(feed: dict[str, Any]) -> dict[str, Any]:
        """Team names and game date for a replay's metadata frame."""
        game_data = feed.get("gameData", {})
        dt = game_data.get("datetime", {})
        return {
            "homeTeam": _team_name(feed, "home"),
            "awayTeam": _team_name(feed, "away"),
            "gameDate": dt.get("officialDate") or dt.get("dateTime"),
        }


class ScheduleExtractor:
    """Extract game information from schedule API responses."""

    @staticmethod
    def extract_games(data: dict[str, Any]) -> list[GameInfo]:
        """Extract game info from Schedule.schedule response.

        Args:
            data: Raw API response from Schedule.schedule

        Returns:
            List of GameInfo objects
        """
        games = []

        for date_entry in data.get("dates", []):
            game_date = _parse_date(date_entry.get("date"))

            for game in date_entry.get("games", []):
                teams = game.get("teams", {})
                game_info = GameInfo(
                    game_pk=game.get("gamePk"),
                    game_date=game_date,
                    game_datetime=_parse_datetime(game.get("gameDate")),
                    status_code=game.get("status", {}).get("statusCode"),
                    detailed_state=game.get("status", {}).get("detailedState"),
                    abstract_game_state=game.get("status", {}).get("abstractGameState"),
                    home_team_id=teams.get("home", {}).get("team", {}).get("id"),
                    away_team_id=teams.get("away", {}).get("team", {}).get("id"),
                    home_team=teams.get("home", {}).get("team", {}).get("name"),
                    away_team=teams.get("away", {}).get("team", {}).get("name"),
                    venue_id=game.get("venue", {}).get("id"),
                )
                games.append(game_info)

        return games


def inning_label(is_top: bool, inning: int) -> str:
    """Format an inning as e.g. 'Top 1st' or 'Bottom 12th'."""
    if 10 <= inning % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(inning % 10, "th")
    return f"{_half(is_top)} {inning}{suffix}"


def pitch_count(play: dict[str, Any]) -> int:
    """Number of pitches thrown in a plate appearance."""
    events = play.get("playEvents")
    if events:
        return sum(1 for e in events if e.get("isPitch"))
    return (play.get("count") or {}).get("pitches", 0)


def _half(is_top: bool) -> str:
    return "Top" if is_top else "Bottom"


def _team_name(feed: dict[str, Any], side: str) -> str | None:
    return feed.get("gameData", {}).get("teams", {}).get(side, {}).get("name")


def _team_record(feed: dict[str, Any], side: str) -> str:
    team = feed.get("gameData", {}).get("teams", {}).get(side, {})
    record = team.get("record") or team.get("leagueRecord") or {}
    return f"{record.get('wins', 0)}-{record.get('losses', 0)}"


def _parse_date(date_str: str | None) -> date | None:
    """Parse date string (YYYY-MM-DD) to date object."""
    if not date_str:
        return None
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except (ValueError, TypeError):
        return None


def _parse_datetime(datetime_str: str | None) -> datetime | None:
    """Parse ISO datetime string to datetime object."""
    if not datetime_str:
        return None
    try:
        # Handle ISO format with Z suffix
        if datetime_str.endswith("Z"):
            datetime_str = datetime_str[:-1] + "+00:00"
        return datetime.fromisoformat(datetime_str)
    except (ValueError, TypeError):
        return None
