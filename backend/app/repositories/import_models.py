"""DTOs for import history persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class MarketAttemptInput:
    market_key: str
    label: str
    runners: list[dict[str, Any]] | None
    succeeded: bool
    catalog_market_id: str | None = None
    error_message: str | None = None


@dataclass(slots=True)
class ImportRunInput:
    run_id: str
    external_id: str
    sport_key: str | None
    home_team: str
    away_team: str
    selected_markets: list[str]
    status: str
    match_id: str | None
    match_reused: bool
    markets_attempted: int
    markets_created: int
    error_code: str | None
    error_message: str | None
    started_at: datetime
    finished_at: datetime | None
    market_attempts: list[MarketAttemptInput] = field(default_factory=list)
