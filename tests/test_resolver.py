# tests/test_resolver.py
"""Test multi-strategy resolution and the Genius client"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from lyric_resolver.core.exceptions import NetworkFailure, RateLimitExceeded
from lyric_resolver.core.gateway import GatewayResponse, RateLimitedGateway
from lyric_resolver.genius.client import GeniusClient
from lyric_resolver.genius.models import (
    CandidateResult,
    Error,
    NotFound,
    ScoredCandidate,
    SearchStrategy,
    Success
)
from lyric_resolver.genius.resolver import GeniusResolver


def searched_texts(client):
    return [call.args[0] for call in client.search.await_args_list]


class TestGeniusResolver:
    """Test strategy ordering and outcomes"""

    @pytest.mark.asyncio
    async def test_direct_match(self, mock_client, make_hit):
        """Test the first strategy wins when it returns a valid hit"""
        mock_client.search.return_value = [make_hit(title="Midnight City", artist="M83")]
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Midnight  City!", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.DIRECT
        assert outcome.score == pytest.approx(0.6 * 2 / 3 + 0.3)
        assert outcome.is_success
        assert searched_texts(mock_client) == ["Midnight  City! M83"]

    @pytest.mark.asyncio
    async def test_strategies_run_in_order(self, mock_client, make_hit):
        """Test only the title-only search matches, after four empty searches"""
        async def search(text):
            return [make_hit()] if text == "Midnight City" else []

        mock_client.search.side_effect = search
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.TITLE_ONLY
        assert searched_texts(mock_client) == [
            "Midnight City M83",
            "Midnight City M83",
            "M83 Midnight City",
            "Midnight City",
        ]

    @pytest.mark.asyncio
    async def test_score_uses_direct_query(self, mock_client, make_hit):
        """Test candidates from later strategies are scored against the direct query"""
        async def search(text):
            return [make_hit(title="Midnight City")] if text == "M83" else []

        mock_client.search.side_effect = search
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Midnight City", "M83")

        assert outcome.strategy is SearchStrategy.ARTIST_ONLY
        assert outcome.score == pytest.approx(0.6 * 2 / 3 + 0.3)

    @pytest.mark.asyncio
    async def test_not_found(self, mock_client):
        """Test every strategy empty yields NotFound"""
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Unknown", "Nobody")

        assert isinstance(outcome, NotFound)
        assert not outcome.is_success
        assert mock_client.search.await_count == 5

    @pytest.mark.asyncio
    async def test_invalid_hits_count_as_empty(self, mock_client, make_hit):
        """Test strategies whose hits are all invalid move on"""
        mock_client.search.return_value = [make_hit(artist=None), "garbage", make_hit(url="")]
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        assert isinstance(await resolver.resolve("Midnight City", "M83"), NotFound)
        assert mock_client.search.await_count == 5

    @pytest.mark.asyncio
    async def test_failing_strategy_continues(self, mock_client, make_hit):
        """Test a failing search does not stop later strategies"""
        mock_client.search.side_effect = [
            NetworkFailure("connection reset"),
            RateLimitExceeded("budget spent", policy="fail_fast"),
            [make_hit()],
        ]
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.ARTIST_FIRST

    @pytest.mark.asyncio
    async def test_all_failing_is_not_found(self, mock_client):
        """Test resolve never raises when every search fails"""
        mock_client.search.side_effect = NetworkFailure("offline")
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        assert isinstance(await resolver.resolve("Midnight City", "M83"), NotFound)

    @pytest.mark.asyncio
    async def test_scoring_failure_moves_to_next_strategy(self, mock_client, make_hit):
        """Test a failure while scoring one strategy's hits only fails that strategy"""
        candidate = CandidateResult.from_hit(make_hit())
        scorer = Mock()
        scorer.select_best.side_effect = [
            RuntimeError("scorer broke"),
            ScoredCandidate(candidate=candidate, score=0.5),
        ]
        mock_client.search.return_value = [make_hit()]
        resolver = GeniusResolver(mock_client, scorer=scorer, strategy_delay=0)

        outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.NORMALIZED
        assert mock_client.search.await_count == 2

    @pytest.mark.asyncio
    async def test_odd_hit_fields_tolerated(self, mock_client, make_hit):
        """Test a non-list featured_artists value does not break parsing"""
        hit = make_hit()
        hit['result']['featured_artists'] = 5
        mock_client.search.return_value = [hit]
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.DIRECT
        assert outcome.candidate.featured_artists == ()

    @pytest.mark.asyncio
    async def test_unparseable_hit_skipped(self, mock_client, make_hit):
        """Test a hit that fails to parse is dropped and the others still compete"""
        parse = CandidateResult.from_hit

        def flaky_parse(hit):
            if hit['result']['id'] == "bad":
                raise TypeError("'int' object is not iterable")
            return parse(hit)

        mock_client.search.return_value = [make_hit(song_id="bad"), make_hit(song_id="2")]
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        with patch.object(CandidateResult, 'from_hit', side_effect=flaky_parse):
            outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Success)
        assert outcome.strategy is SearchStrategy.DIRECT
        assert outcome.candidate.id == "2"

    @pytest.mark.asyncio
    async def test_orchestration_failure_is_error(self, mock_client):
        """Test a failure outside any single strategy becomes Error"""
        resolver = GeniusResolver(mock_client, strategy_delay=0)
        resolver._run_strategies = AsyncMock(side_effect=RuntimeError("resolver broke"))

        outcome = await resolver.resolve("Midnight City", "M83")

        assert isinstance(outcome, Error)
        assert "resolver broke" in outcome.message
        mock_client.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, mock_client):
        """Test cancellation is never turned into an outcome"""
        mock_client.search.side_effect = asyncio.CancelledError()
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        with pytest.raises(asyncio.CancelledError):
            await resolver.resolve("Midnight City", "M83")

    @pytest.mark.asyncio
    async def test_blank_strategies_skipped(self, mock_client):
        """Test strategies with an empty query are not searched"""
        resolver = GeniusResolver(mock_client, strategy_delay=0)

        await resolver.resolve("Midnight City", "")

        assert searched_texts(mock_client) == ["Midnight City"] * 4

    @pytest.mark.asyncio
    async def test_min_score(self, mock_client, make_hit):
        """Test best candidates under the minimum score are rejected"""
        mock_client.search.return_value = [make_hit(title="Something Else", artist="Nobody")]
        resolver = GeniusResolver(mock_client, strategy_delay=0, min_score=0.5)

        assert isinstance(await resolver.resolve("Midnight City", "M83"), NotFound)

    @pytest.mark.asyncio
    async def test_courtesy_delay_between_searches(self, mock_client, monkeypatch):
        """Test the delay is applied between searches only"""
        sleep = AsyncMock()
        monkeypatch.setattr('lyric_resolver.genius.resolver.asyncio.sleep', sleep)
        resolver = GeniusResolver(mock_client, strategy_delay=0.2)

        await resolver.resolve("Midnight City", "M83")

        assert sleep.await_count == 4
        assert all(call.args[0] == 0.2 for call in sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_custom_strategy_list(self, mock_client):
        """Test the strategy list can be narrowed"""
        resolver = GeniusResolver(
            mock_client, strategy_delay=0, strategies=[SearchStrategy.ARTIST_ONLY]
        )

        await resolver.resolve("Midnight City", "M83")

        assert searched_texts(mock_client) == ["M83"]


class TestGeniusClient:
    """Test the search and page calls"""

    @staticmethod
    def gateway_returning(response):
        gateway = Mock(spec=RateLimitedGateway)
        gateway.request = AsyncMock(return_value=response)
        return gateway

    @pytest.mark.asyncio
    async def test_search_returns_hits(self, make_hit):
        """Test hits are unwrapped from the response envelope"""
        body = json.dumps({'meta': {'status': 200}, 'response': {'hits': [make_hit()]}})
        gateway = self.gateway_returning(GatewayResponse(status=200, url="u", text=body))
        client = GeniusClient(gateway, access_token="secret", per_page=5)

        hits = await client.search("Midnight City M83")

        assert hits[0]['result']['title'] == "Midnight City"
        method, url = gateway.request.await_args.args
        kwargs = gateway.request.await_args.kwargs
        assert (method, url) == ('GET', "https://api.genius.com/search")
        assert kwargs['params'] == {'q': "Midnight City M83", 'per_page': "5"}
        assert kwargs['headers']['Authorization'] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_search_without_token(self):
        """Test anonymous searches send no authorization header"""
        body = json.dumps({'response': {'hits': []}})
        gateway = self.gateway_returning(GatewayResponse(status=200, url="u", text=body))
        client = GeniusClient(gateway)

        assert await client.search("anything") == []
        assert 'Authorization' not in gateway.request.await_args.kwargs['headers']

    @pytest.mark.asyncio
    async def test_search_http_error(self):
        """Test non-2xx responses raise NetworkFailure with the status"""
        gateway = self.gateway_returning(GatewayResponse(status=429, url="u", text=""))
        client = GeniusClient(gateway)

        with pytest.raises(NetworkFailure) as exc_info:
            await client.search("anything")
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_search_invalid_json(self):
        """Test unreadable bodies raise NetworkFailure"""
        gateway = self.gateway_returning(GatewayResponse(status=200, url="u", text="<html>"))
        client = GeniusClient(gateway)

        with pytest.raises(NetworkFailure):
            await client.search("anything")

    @pytest.mark.asyncio
    async def test_search_missing_hits(self):
        """Test envelopes without hits yield an empty list"""
        gateway = self.gateway_returning(GatewayResponse(status=200, url="u", text='{"response": {}}'))
        client = GeniusClient(gateway)

        assert await client.search("anything") == []

    @pytest.mark.asyncio
    async def test_fetch_page_uses_page_gateway(self):
        """Test page fetches go through the page gateway"""
        api_gateway = self.gateway_returning(None)
        page = GatewayResponse(status=200, url="https://genius.com/x", text="<html></html>")
        page_gateway = self.gateway_returning(page)
        client = GeniusClient(api_gateway, page_gateway=page_gateway)

        assert await client.fetch_page("https://genius.com/x", headers={'User-Agent': "ua"}) is page
        api_gateway.request.assert_not_awaited()
