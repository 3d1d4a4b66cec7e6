"""Import history data access helpers."""

from __future__ import annotations

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session, selectinload

from app.models import ImportMarketAttempt, ImportRun

from .import_models import ImportRunInput


class ImportRepository:
    """Encapsulate import run persistence concerns."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def record_import(self, payload: ImportRunInput) -> ImportRun:
        record = ImportRun(
            run_id=payload.run_id,
            external_id=payload.external_id,
            sport_key=payload.sport_key,
            home_team=payload.home_team,
            away_team=payload.away_team,
            selected_markets=list(payload.selected_markets),
            status=payload.status,
            match_id=payload.match_id,
            match_reused=payload.match_reused,
            markets_attempted=payload.markets_attempted,
            markets_created=payload.markets_created,
            error_code=payload.error_code,
            error_message=payload.error_message,
            started_at=payload.started_at,
            finished_at=payload.finished_at,
        )
        for attempt in payload.market_attempts:
            record.market_attempts.append(
                ImportMarketAttempt(
                    market_key=attempt.market_key,
                    label=attempt.label,
                    runners=attempt.runners,
                    succeeded=attempt.succeeded,
                    catalog_market_id=attempt.catalog_market_id,
                    error_message=attempt.error_message,
                )
            )
        self._session.add(record)
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Queries

    def get_import_run(self, run_id: str) -> ImportRun | None:
        return self._session.get(ImportRun, run_id)

    def list_import_runs(
        self,
        *,
        external_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ImportRun], int]:
        filters = []
        if external_id:
            filters.append(ImportRun.external_id == external_id)
        if status:
            filters.append(ImportRun.status == status)

        total = self._session.execute(
            select(func.count()).select_from(ImportRun).where(*filters)
        ).scalar_one()

        query = (
            select(ImportRun)
            .where(*filters)
            .options(selectinload(ImportRun.market_attempts))
            .order_by(desc(ImportRun.started_at))
            .limit(limit)
            .offset(offset)
        )
        runs = list(self._session.execute(query).scalars().all())
        return runs, int(total)
