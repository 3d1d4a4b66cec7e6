from __future__ import annotations

import httpx
import pytest

from importer import FeedUnavailable
from ingestion.client import OddsApiClient
from ingestion.service import fetch_live_scores, refresh_feed


def _factory(handler):
    def build() -> OddsApiClient:
        return OddsApiClient(
            base_url="https://odds.test/v4",
            api_key="secret",
            transport=httpx.MockTransport(handler),
        )

    return build


def test_refresh_feed_builds_payloads(sample_odds_payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=sample_odds_payload, headers={"x-requests-remaining": "12"})

    result = refresh_feed("americanfootball_nfl", client_factory=_factory(handler))

    assert result.error is None
    assert result.sport_key == "americanfootball_nfl"
    assert [payload.external_id for payload in result.payloads] == [
        "e912304de2b2ce35b473ce2ecd3d1502",
        "4acd2d9f4a4c9a31f0c6b61dd84b5b1e",
    ]
    assert result.quota.requests_remaining == 12


def test_refresh_feed_reports_unavailable_feed_with_empty_payloads():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "invalid api key"})

    result = refresh_feed("americanfootball_nfl", client_factory=_factory(handler))

    assert result.payloads == []
    assert isinstance(result.error, FeedUnavailable)
    assert "americanfootball_nfl" in result.error.message


def test_refresh_feed_handles_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    result = refresh_feed("basketball_nba", client_factory=_factory(handler))

    assert result.payloads == []
    assert result.error is not None


def test_fetch_live_scores_drops_completed_events():
    scores = [
        {"id": "a", "completed": False, "scores": [{"name": "Home", "score": "7"}]},
        {"id": "b", "completed": True},
        {"id": "c"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=scores)

    live = fetch_live_scores("americanfootball_nfl", client_factory=_factory(handler))

    assert [score["id"] for score in live] == ["a", "c"]


def test_fetch_live_scores_raises_when_feed_down():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(FeedUnavailable):
        fetch_live_scores("americanfootball_nfl", client_factory=_factory(handler))
