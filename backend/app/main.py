from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Body, Depends, FastAPI, HTTPException, Query

from importer import (
    FeedUnavailable,
    ImportOutcome,
    ImportRejected,
    ImportState,
    ImportStatus,
    InvalidSelection,
)
from ingestion.sports import SUPPORTED_SPORTS

from . import schemas
from .core.config import settings
from .db import init_db
from .services.import_service import ImportService, PayloadNotFound

app = FastAPI(title="Odds Import API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create the import history tables when the API boots."""

    init_db()


@lru_cache
def get_import_service() -> ImportService:
    return ImportService()


def _import_service() -> ImportService:
    """Provide the process-wide import service that owns the state store."""

    return get_import_service()


def _state_schema(
    external_id: str, status: ImportStatus, state: ImportState | None
) -> schemas.ImportState:
    if state is None:
        return schemas.ImportState(external_id=external_id, status=status.value)
    return schemas.ImportState(
        external_id=external_id,
        status=status.value,
        match_id=state.match_id,
        error=state.error,
        markets_created=state.markets_created,
        warnings=list(state.warnings),
    )


def _result_schema(outcome: ImportOutcome) -> schemas.ImportResult:
    return schemas.ImportResult(
        external_id=outcome.external_id,
        status=outcome.status.value,
        match_id=outcome.match_id,
        match_reused=outcome.match_reused,
        markets_attempted=outcome.markets_attempted,
        markets_created=outcome.markets_created,
        error_code=outcome.error_code.value if outcome.error_code else None,
        error_message=outcome.error_message,
        warnings=[
            schemas.MarketWarning(
                market_key=attempt.market_key,
                label=attempt.label,
                message=attempt.error,
            )
            for attempt in outcome.warnings
        ],
    )


def _rejection_to_http(exc: ImportRejected) -> HTTPException:
    if isinstance(exc, InvalidSelection):
        return HTTPException(status_code=422, detail=exc.message)
    return HTTPException(status_code=409, detail=exc.message)


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


@app.get("/sports", response_model=list[schemas.Sport], tags=["feed"])
def list_sports():
    """Feed sports that can be browsed and imported."""

    return [schemas.Sport.model_validate(sport) for sport in SUPPORTED_SPORTS]


@app.get("/feed/quota", response_model=schemas.ApiQuota, tags=["feed"])
def feed_quota(service: ImportService = Depends(_import_service)):
    """Request quota reported by the odds feed on its latest response."""

    return schemas.ApiQuota.model_validate(service.quota)


@app.get("/feed/{sport_key}/matches", response_model=schemas.MatchPreviewList, tags=["feed"])
def list_feed_matches(sport_key: str, service: ImportService = Depends(_import_service)):
    """Refresh the feed for a sport and return importable match previews."""

    refresh = service.refresh(sport_key)
    items = [
        schemas.MatchPreview(
            payload=schemas.ImportPayload.model_validate(preview.payload),
            state=_state_schema(preview.payload.external_id, preview.status, preview.state),
        )
        for preview in service.previews(refresh.payloads)
    ]
    return schemas.MatchPreviewList(
        sport_key=sport_key,
        fetched_at=refresh.fetched_at,
        total=len(items),
        items=items,
        error=refresh.error.message if refresh.error else None,
        quota=schemas.ApiQuota.model_validate(refresh.quota) if refresh.quota else None,
    )


@app.get("/feed/{sport_key}/scores", response_model=list[schemas.LiveScore], tags=["feed"])
def list_live_scores(sport_key: str, service: ImportService = Depends(_import_service)):
    """Scores for matches that have not completed yet."""

    try:
        scores = service.live_scores(sport_key)
    except FeedUnavailable as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return [schemas.LiveScore.model_validate(score) for score in scores]


@app.post("/imports", response_model=schemas.ImportResult, tags=["imports"])
def create_import(
    request: schemas.ImportRequest,
    service: ImportService = Depends(_import_service),
):
    """Import a previewed match and the selected markets into the catalog."""

    try:
        outcome = service.import_match(request.external_id, request.markets)
    except PayloadNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ImportRejected as exc:
        raise _rejection_to_http(exc) from exc
    return _result_schema(outcome)


@app.post("/imports/{external_id}/retry", response_model=schemas.ImportResult, tags=["imports"])
def retry_import(
    external_id: str,
    request: Annotated[schemas.RetryRequest | None, Body()] = None,
    service: ImportService = Depends(_import_service),
):
    """Retry a failed import; defaults to every market built for the match."""

    try:
        markets = request.markets if request and request.markets is not None else None
        if markets is None:
            markets = service.get_payload(external_id).market_keys
        outcome = service.retry_import(external_id, markets)
    except PayloadNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ImportRejected as exc:
        raise _rejection_to_http(exc) from exc
    return _result_schema(outcome)


@app.get("/imports", response_model=schemas.ImportRunList, tags=["imports"])
def list_imports(
    *,
    external_id: Annotated[str | None, Query(description="Filter by external match id")] = None,
    status: Annotated[
        str | None,
        Query(description="Filter by terminal status", pattern="^(success|error)$"),
    ] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: ImportService = Depends(_import_service),
):
    """Persisted import history, newest first."""

    runs, total = service.history(
        external_id=external_id, status=status, limit=limit, offset=offset
    )
    return schemas.ImportRunList(total=total, items=runs)


@app.get("/imports/{external_id}", response_model=schemas.ImportState, tags=["imports"])
def get_import_state(external_id: str, service: ImportService = Depends(_import_service)):
    """Current lifecycle status for an external match id."""

    status, state = service.status(external_id)
    return _state_schema(external_id, status, state)
