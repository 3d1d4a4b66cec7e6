from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportRun(Base):
    __tablename__ = "import_runs"

    run_id: Mapped[str] = mapped_column(String, primary_key=True)
    external_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    sport_key: Mapped[str | None] = mapped_column(String, nullable=True)
    home_team: Mapped[str] = mapped_column(String, nullable=False)
    away_team: Mapped[str] = mapped_column(String, nullable=False)
    selected_markets: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    match_id: Mapped[str | None] = mapped_column(String, nullable=True)
    match_reused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    markets_attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    markets_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    market_attempts: Mapped[list["ImportMarketAttempt"]] = relationship(
        "ImportMarketAttempt",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="ImportMarketAttempt.attempt_id",
    )


class ImportMarketAttempt(Base):
    __tablename__ = "import_market_attempts"

    attempt_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String, ForeignKey("import_runs.run_id"), nullable=False)
    market_key: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str] = mapped_column(String, nullable=False)
    runners: Mapped[list | None] = mapped_column(JSON, nullable=True)
    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    catalog_market_id: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped[ImportRun] = relationship("ImportRun", back_populates="market_attempts")
