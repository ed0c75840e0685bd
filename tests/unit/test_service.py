"""Unit tests for GameService."""

import asyncio
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from mlb_live_commentary.commentary import StaticCommentator
from mlb_live_commentary.errors import MissingCurrentPlay, UpstreamUnavailable
from mlb_live_commentary.service import GameService
from mlb_live_commentary.upstream.client import GumboClient

GAME_PK = 775296


@pytest.fixture
def service(fast_config, mock_client, commentator):
    return GameService(fast_config, client=mock_client, commentator=commentator)


class TestServiceInit:
    @patch("mlb_live_commentary.upstream.client.StatsAPI")
    def test_builds_collaborators_from_config(self, mock_statsapi, fast_config):
        """Test a config without an API key gets the static commentator."""
        service = GameService(fast_config)

        assert service.client.api is mock_statsapi.return_value

        assert isinstance(service.commentator, StaticCommentator)
        assert service.client.rate_limit is None
        assert service.hub.default_game_pk == 775296
        assert service.hub.poll_interval == 0.01


class TestSubmitPrediction:
    """Test GameService.submit_prediction()."""

    @pytest.mark.asyncio
    async def test_blank_rejected(self, service):
        with pytest.raises(ValueError):
            await service.submit_prediction("u1", GAME_PK, "   ")

    @pytest.mark.asyncio
    async def test_play_index_from_history(self, service, mock_client):
        """Test without a running replay the index is the last play of the game."""
        prediction = await service.submit_prediction("u1", GAME_PK, "  Ohtani homers ")

        assert prediction.prediction == "Ohtani homers"
        assert prediction.play_index == 2
        mock_client.get_full_play_history.assert_called_once_with(GAME_PK)
        assert service.predictions.get("u1", GAME_PK) == prediction

    @pytest.mark.asyncio
    async def test_play_index_falls_back_to_zero(self, service, mock_client):
        mock_client.get_full_play_history.side_effect = UpstreamUnavailable("down", GAME_PK)

        prediction = await service.submit_prediction("u1", GAME_PK, "Ohtani homers")

        assert prediction.play_index == 0

    @pytest.mark.asyncio
    async def test_play_index_through_upstream_client(self, fast_config, commentator, sample_feed):
        """Test the index is read through GumboClient, and an API failure falls back to 0."""
        api = MagicMock()
        api.Game.liveGameV1.return_value.json.return_value = sample_feed
        client = GumboClient(api=api, rate_limit=None)
        service = GameService(fast_config, client=client, commentator=commentator)

        prediction = await service.submit_prediction("u1", GAME_PK, "Ohtani homers")

        assert prediction.play_index == 2
        api.Game.liveGameV1.assert_called_once_with(game_pk=GAME_PK)

        api.Game.liveGameV1.side_effect = RuntimeError("HTTP 503")
        fallback = await service.submit_prediction("u2", GAME_PK, "Judge homers")

        assert fallback.play_index == 0

    @pytest.mark.asyncio
    async def test_play_index_from_running_replay(self, service, mock_client):
        stream = service.replay("u1", GAME_PK)
        try:
            first = await asyncio.wait_for(stream.__anext__(), 1)
            assert first.event == "request_prediction"

            prediction = await service.submit_prediction("u1", GAME_PK, "Ohtani homers")

            assert prediction.play_index == 0
            mock_client.get_full_play_history.assert_not_called()
        finally:
            stream.close()
            await stream.wait_closed()


class TestReplay:
    """Test GameService.replay()."""

    @pytest.mark.asyncio
    async def test_full_replay(self, service):
        stream = service.replay("u1", GAME_PK)

        async with stream:
            request = await asyncio.wait_for(stream.__anext__(), 1)
            assert request.event == "request_prediction"
            await service.submit_prediction("u1", GAME_PK, "Dodgers win")
            frames = [frame async for frame in stream]

        assert [f.event for f in frames] == ["metadata", "play", "play", "play", "complete"]
        assert frames[1].data.user_prediction.prediction == "Dodgers win"
        assert service._replays == {}

    @pytest.mark.asyncio
    async def test_replays_isolated_per_user(self, service):
        service.predictions.save("u2", GAME_PK, "Yankees win", play_index=0)

        async with service.replay("u1", GAME_PK) as first, service.replay("u2", GAME_PK) as second:
            assert (await asyncio.wait_for(first.__anext__(), 1)).event == "request_prediction"
            metadata = await asyncio.wait_for(second.__anext__(), 1)

        assert metadata.event == "metadata"
        assert metadata.data["userPrediction"] == "Yankees win"


class TestCurrentLiveStatus:
    """Test GameService.current_live_status()."""

    @pytest.mark.asyncio
    async def test_status_from_feed(self, service):
        status = await service.current_live_status(GAME_PK)

        assert status.inning == "Top 1st"
        assert status.away_team.name == "Los Angeles Dodgers"
        assert status.away_team.score == 2
        assert status.home_team.name == "New York Yankees"
        assert status.home_team.score == 0
        assert status.current_pitcher == "Gerrit Cole"

    @pytest.mark.asyncio
    async def test_team_names_follow_game(self, service, sample_feed):
        """Test names come from the game's own data."""
        sample_feed["gameData"]["teams"]["home"]["name"] = "Chicago Cubs"

        status = await service.current_live_status(GAME_PK)

        assert status.home_team.name == "Chicago Cubs"

    @pytest.mark.asyncio
    async def test_missing_current_play(self, service, sample_feed):
        del sample_feed["liveData"]["plays"]["currentPlay"]

        with pytest.raises(MissingCurrentPlay, match="No current play data available for game 775296"):
            await service.current_live_status(GAME_PK)

    @pytest.mark.asyncio
    async def test_upstream_error(self, service, mock_client):
        mock_client.get_snapshot.side_effect = UpstreamUnavailable("down", GAME_PK)

        with pytest.raises(UpstreamUnavailable):
            await service.current_live_status(GAME_PK)


class TestOtherOperations:
    @pytest.mark.asyncio
    async def test_get_schedule(self, service, mock_client):
        mock_client.get_schedule.return_value = []

        assert await service.get_schedule(date(2024, 10, 29), date(2024, 10, 29)) == []
        mock_client.get_schedule.assert_called_once_with(date(2024, 10, 29), date(2024, 10, 29))

    @pytest.mark.asyncio
    async def test_chat(self, service, commentator):
        reply = await service.chat("riaz", '{"playDescription": "Hi"}')

        assert reply == "Coach: Hi"
        assert commentator.calls[0][0] == "riaz"

    @pytest.mark.asyncio
    async def test_live_feed_and_close(self, service):
        async with service.subscribe_live_feed() as subscription:
            frame = await asyncio.wait_for(subscription.__anext__(), 1)

        assert frame.data.type == "single"
        await service.close()
        assert service.hub.active_games() == []
