"""Typed domain representations shared by ingestion, import, and the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

UNAVAILABLE_PRICE = Decimal("0")


@dataclass(frozen=True, slots=True)
class ExternalQuote:
    """A single bookmaker price for one outcome, as exposed by the feed."""

    bookmaker_id: str
    market_key: str
    outcome_name: str
    price: Decimal
    point: Decimal | None = None


@dataclass(frozen=True, slots=True)
class ConsensusOutcome:
    """Aggregated runner ready to be published to the catalog.

    A price of ``0`` means no bookmaker quoted the outcome.
    """

    name: str
    back_price: Decimal
    lay_price: Decimal
    point: Decimal | None = None

    def to_catalog_runner(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "backOdds": float(self.back_price),
            "layOdds": float(self.lay_price),
        }


@dataclass(frozen=True, slots=True)
class CanonicalMarket:
    """Platform market built from heterogeneous bookmaker data."""

    key: str
    label: str
    runners: tuple[ConsensusOutcome, ...] = ()


@dataclass(slots=True)
class ImportPayload:
    """Everything needed to preview and import one feed match."""

    external_id: str
    home_team: str
    away_team: str
    sport_label: str
    sport_key: str
    commence_time: datetime | None
    markets: list[CanonicalMarket] = field(default_factory=list)
    quotes: list[ExternalQuote] = field(default_factory=list)
    bookmaker_count: int = 0
    raw_data: dict[str, Any] | None = None

    @property
    def market_keys(self) -> list[str]:
        return [market.key for market in self.markets]

    def market(self, key: str) -> CanonicalMarket | None:
        return next((market for market in self.markets if market.key == key), None)
