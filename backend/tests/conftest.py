from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.domain import ExternalQuote


@pytest.fixture
def sample_odds_payload() -> list[dict[str, object]]:
    path = Path(__file__).parent / "data" / "sample_odds.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def sample_match(sample_odds_payload) -> dict[str, object]:
    return sample_odds_payload[0]


@pytest.fixture
def make_quote():
    def _make(
        bookmaker: str,
        market_key: str,
        outcome: str,
        price: str,
        point: str | None = None,
    ) -> ExternalQuote:
        return ExternalQuote(
            bookmaker_id=bookmaker,
            market_key=market_key,
            outcome_name=outcome,
            price=Decimal(price),
            point=Decimal(point) if point is not None else None,
        )

    return _make


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path/'odds_import.db'}",
        odds_api_key="test-key",
        catalog_base_url="http://catalog.test/api",
        known_ids_ttl_seconds=0,
    )


@pytest.fixture
def session_factory():
    """Context-managed sessions bound to a private in-memory database."""

    from app import models  # noqa: F401
    from app.db import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=True, future=True)

    @contextmanager
    def scope() -> Iterator[Session]:
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    yield scope
    engine.dispose()
