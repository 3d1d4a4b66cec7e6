from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from app.domain import ImportPayload
from importer.errors import FeedUnavailable

from .client import ApiQuota, OddsApiClient
from .normalize import build_import_payloads


@dataclass(slots=True)
class FeedRefresh:
    """Payloads built from one feed fetch; ``error`` is set when the feed was unreachable."""

    sport_key: str
    fetched_at: datetime
    payloads: list[ImportPayload] = field(default_factory=list)
    error: FeedUnavailable | None = None
    quota: ApiQuota | None = None


def refresh_feed(
    sport_key: str,
    *,
    client_factory: Callable[[], OddsApiClient] = OddsApiClient,
) -> FeedRefresh:
    fetched_at = datetime.now(timezone.utc)
    with client_factory() as client:
        try:
            raw_matches = client.get_odds(sport_key)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Odds feed unavailable for {}: {}", sport_key, exc)
            return FeedRefresh(
                sport_key=sport_key,
                fetched_at=fetched_at,
                error=FeedUnavailable(f"Odds feed unavailable for {sport_key}: {exc}"),
                quota=client.quota,
            )
        quota = client.quota

    payloads = build_import_payloads(raw_matches, sport_key)
    logger.info("Built {} import payloads for {}", len(payloads), sport_key)
    return FeedRefresh(sport_key=sport_key, fetched_at=fetched_at, payloads=payloads, quota=quota)


def fetch_live_scores(
    sport_key: str,
    *,
    days_from: int = 1,
    client_factory: Callable[[], OddsApiClient] = OddsApiClient,
) -> list[dict[str, Any]]:
    """Scores for events that are still in play."""

    with client_factory() as client:
        try:
            scores = client.get_scores(sport_key, days_from=days_from)
        except (httpx.HTTPError, ValueError) as exc:
            raise FeedUnavailable(f"Scores feed unavailable for {sport_key}: {exc}") from exc
    return [score for score in scores if not score.get("completed")]
