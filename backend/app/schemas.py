from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Sport(BaseModel):
    key: str
    label: str
    group: str

    model_config = {"from_attributes": True}


class Runner(BaseModel):
    name: str
    back_price: float
    lay_price: float
    point: float | None = None

    model_config = {"from_attributes": True}

    @field_validator("back_price", "lay_price", "point", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> float | None:
        if value is None:
            return None
        return float(value)


class CanonicalMarket(BaseModel):
    key: str
    label: str
    runners: list[Runner] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ExternalQuote(BaseModel):
    bookmaker_id: str
    market_key: str
    outcome_name: str
    price: float
    point: float | None = None

    model_config = {"from_attributes": True}

    @field_validator("price", "point", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> float | None:
        if value is None:
            return None
        return float(value)


class ImportPayload(BaseModel):
    external_id: str
    home_team: str
    away_team: str
    sport_label: str
    sport_key: str
    commence_time: datetime | None = None
    bookmaker_count: int = 0
    markets: list[CanonicalMarket] = Field(default_factory=list)
    quotes: list[ExternalQuote] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ImportState(BaseModel):
    external_id: str
    status: str
    match_id: str | None = None
    error: str | None = None
    markets_created: int = 0
    warnings: list[str] = Field(default_factory=list)


class MatchPreview(BaseModel):
    payload: ImportPayload
    state: ImportState


class ApiQuota(BaseModel):
    requests_remaining: int | None = None
    requests_used: int | None = None

    model_config = {"from_attributes": True}


class MatchPreviewList(BaseModel):
    sport_key: str
    fetched_at: datetime
    total: int
    items: list[MatchPreview]
    error: str | None = None
    quota: ApiQuota | None = None


class ImportRequest(BaseModel):
    external_id: str = Field(min_length=1)
    markets: list[str] = Field(default_factory=list)


class RetryRequest(BaseModel):
    markets: list[str] | None = None


class MarketWarning(BaseModel):
    code: str = "MarketCreationFailed"
    market_key: str
    label: str
    message: str | None = None


class ImportResult(BaseModel):
    external_id: str
    status: str
    match_id: str | None = None
    match_reused: bool = False
    markets_attempted: int = 0
    markets_created: int = 0
    error_code: str | None = None
    error_message: str | None = None
    warnings: list[MarketWarning] = Field(default_factory=list)


class MarketAttemptRecord(BaseModel):
    market_key: str
    label: str
    succeeded: bool
    catalog_market_id: str | None = None
    error_message: str | None = None
    runners: list[dict[str, Any]] | None = None

    model_config = {"from_attributes": True}


class ImportRunRecord(BaseModel):
    run_id: str
    external_id: str
    sport_key: str | None = None
    home_team: str
    away_team: str
    selected_markets: list[str] | None = None
    status: str
    match_id: str | None = None
    match_reused: bool = False
    markets_attempted: int
    markets_created: int
    error_code: str | None = None
    error_message: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    market_attempts: list[MarketAttemptRecord] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ImportRunList(BaseModel):
    total: int
    items: list[ImportRunRecord]


class LiveScore(BaseModel):
    id: str
    sport_key: str | None = None
    sport_title: str | None = None
    commence_time: datetime | None = None
    completed: bool = False
    home_team: str | None = None
    away_team: str | None = None
    scores: list[dict[str, Any]] | None = None
    last_update: datetime | None = None
