from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_MARKET_KEYS = ("h2h", "spreads", "totals")


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/odds_import.db",
        description="SQLAlchemy compatible database URL for the import history",
    )
    odds_api_base_url: AnyUrl = Field(
        default="https://api.the-odds-api.com/v4",
        description="Base URL for The Odds API",
    )
    odds_api_key: str | None = Field(
        default=None,
        description="API key sent as the apiKey query parameter on every feed request",
    )
    odds_api_regions: str = Field(
        default="us",
        description="Bookmaker regions requested from the feed",
    )
    odds_api_markets: list[str] | str = Field(
        default_factory=lambda: list(SUPPORTED_MARKET_KEYS),
        description="Comma-separated list or array of feed market keys to request",
    )
    odds_api_odds_format: str = Field(
        default="decimal",
        description="Odds format requested from the feed (only decimal prices are aggregated)",
    )
    odds_api_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to feed HTTP calls",
        gt=0,
    )
    scores_days_from: int = Field(
        default=1,
        description="How many days back the scores endpoint should look",
        ge=1,
        le=3,
    )
    catalog_base_url: AnyUrl = Field(
        default="http://localhost:5000/api",
        description="Base URL of the platform catalog API that owns matches and markets",
    )
    catalog_api_token: str | None = Field(
        default=None,
        description="Bearer token presented to the catalog API admin endpoints",
    )
    catalog_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to catalog HTTP calls",
        gt=0,
    )
    catalog_match_page_size: int = Field(
        default=500,
        description="Page size used when enumerating catalog matches for external ids",
        ge=1,
    )
    known_ids_ttl_seconds: float = Field(
        default=30.0,
        description="How long the pre-flight set of imported external ids is reused before refreshing",
        ge=0,
    )
    default_sport_key: str = Field(
        default="americanfootball_nfl",
        description="Feed sport key used by the CLI when none is given",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("odds_api_markets", mode="after")
    @classmethod
    def _parse_market_keys(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return list(SUPPORTED_MARKET_KEYS)
        if isinstance(value, str):
            tokens = [token.strip() for token in value.split(",") if token.strip()]
        elif isinstance(value, (list, tuple, set)):
            tokens = [str(item).strip() for item in value if str(item).strip()]
        else:
            raise ValueError(
                "ODDS_API_MARKETS must be provided as a list or comma-separated string"
            )
        unknown = sorted(set(tokens) - set(SUPPORTED_MARKET_KEYS))
        if unknown:
            raise ValueError(
                f"ODDS_API_MARKETS contains unsupported keys: {', '.join(unknown)}"
            )
        return tokens or list(SUPPORTED_MARKET_KEYS)

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
