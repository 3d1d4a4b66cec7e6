from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings


@dataclass(slots=True)
class ApiQuota:
    requests_remaining: int | None = None
    requests_used: int | None = None


def _parse_header_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


class OddsApiClient:
    """Thin wrapper around The Odds API v4 endpoints."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        regions: str | None = None,
        markets: list[str] | None = None,
        odds_format: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or str(settings.odds_api_base_url)
        self.api_key = api_key if api_key is not None else settings.odds_api_key
        self.regions = regions or settings.odds_api_regions
        self.markets = list(markets or settings.odds_api_markets)
        self.odds_format = odds_format or settings.odds_api_odds_format
        self.timeout = timeout or settings.odds_api_timeout_seconds
        if not self.api_key:
            logger.warning("ODDS_API_KEY is not configured; feed requests will be rejected")
        self.quota = ApiQuota()
        self.client = httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=transport
        )

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        query = {"apiKey": self.api_key, **params} if self.api_key else dict(params)
        logger.info("Odds API GET {} params={}", path, params)
        response = self.client.get(path, params=query)
        self._track_quota(response)
        response.raise_for_status()
        return response.json()

    def _track_quota(self, response: httpx.Response) -> None:
        remaining = _parse_header_int(response.headers.get("x-requests-remaining"))
        used = _parse_header_int(response.headers.get("x-requests-used"))
        if remaining is not None:
            self.quota.requests_remaining = remaining
        if used is not None:
            self.quota.requests_used = used

    @staticmethod
    def _as_records(payload: Any) -> list[dict[str, Any]]:
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    def get_sports(self) -> list[dict[str, Any]]:
        return self._as_records(self._get("/sports", {}))

    def get_odds(self, sport_key: str) -> list[dict[str, Any]]:
        params = {
            "regions": self.regions,
            "markets": ",".join(self.markets),
            "oddsFormat": self.odds_format,
            "dateFormat": "iso",
        }
        return self._as_records(self._get(f"/sports/{sport_key}/odds", params))

    def get_scores(self, sport_key: str, days_from: int = 1) -> list[dict[str, Any]]:
        params = {"daysFrom": days_from, "dateFormat": "iso"}
        return self._as_records(self._get(f"/sports/{sport_key}/scores", params))

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "OddsApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
