from __future__ import annotations

from sqlalchemy.orm import Session

from app.repositories import ImportRepository, ImportRunInput

from .models import ImportRun


def record_import(session: Session, payload: ImportRunInput) -> ImportRun:
    return ImportRepository(session).record_import(payload)


def get_import_run(session: Session, run_id: str) -> ImportRun | None:
    return ImportRepository(session).get_import_run(run_id)


def list_import_runs(
    session: Session,
    *,
    external_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ImportRun], int]:
    return ImportRepository(session).list_import_runs(
        external_id=external_id,
        status=status,
        limit=limit,
        offset=offset,
    )
