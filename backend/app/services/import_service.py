"""Service layer driving feed refreshes and catalog imports.

Owns the import state store and the latest built payloads, so the HTTP API
and the CLI share one lifecycle view per process.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Collection
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app import crud
from app.db import session_scope
from app.domain import ImportPayload
from app.repositories import ImportRunInput, MarketAttemptInput
from app.schemas import ImportRunRecord
from importer import (
    CatalogError,
    ImportOrchestrator,
    ImportOutcome,
    ImportState,
    ImportStateStore,
    ImportStatus,
)
from ingestion.client import ApiQuota, OddsApiClient
from ingestion.service import FeedRefresh, fetch_live_scores, refresh_feed

from .catalog_client import CatalogClient


class PayloadNotFound(LookupError):
    """No payload for the external id in the latest feed refresh."""

    def __init__(self, external_id: str) -> None:
        super().__init__(f"No feed payload cached for {external_id}; refresh the feed first")
        self.external_id = external_id


@dataclass(slots=True)
class PayloadPreview:
    payload: ImportPayload
    status: ImportStatus
    state: ImportState | None


class KnownExternalIds:
    """Catalog external ids, refreshed at most once per TTL.

    Only used to pre-label matches as duplicates; the catalog's conflict
    response stays authoritative during an import.
    """

    def __init__(
        self,
        loader: Callable[[], set[str]],
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._ids: frozenset[str] = frozenset()
        self._loaded_at: float | None = None

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None

    def get(self) -> frozenset[str]:
        with self._lock:
            now = self._clock()
            if self._loaded_at is not None and now - self._loaded_at < self._ttl:
                return self._ids
            try:
                self._ids = frozenset(self._loader())
            except CatalogError as exc:
                logger.warning("Could not refresh imported external ids: {}", exc.message)
            else:
                logger.debug("Loaded {} imported external ids", len(self._ids))
            self._loaded_at = now
            return self._ids


def _default_catalog_factory() -> CatalogClient:
    return CatalogClient()


def _load_catalog_external_ids(factory: Callable[[], Any]) -> Callable[[], set[str]]:
    def _load() -> set[str]:
        with factory() as catalog:
            return catalog.list_external_ids()

    return _load


class ImportService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        state_store: ImportStateStore | None = None,
        feed_client_factory: Callable[[], OddsApiClient] = OddsApiClient,
        catalog_factory: Callable[[], Any] = _default_catalog_factory,
        session_factory: Callable[[], AbstractContextManager[Session]] | None = session_scope,
        known_ids: KnownExternalIds | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.state_store = state_store or ImportStateStore()
        self._feed_client_factory = feed_client_factory
        self._catalog_factory = catalog_factory
        self._session_factory = session_factory
        self.known_ids = known_ids or KnownExternalIds(
            _load_catalog_external_ids(catalog_factory),
            ttl_seconds=self._settings.known_ids_ttl_seconds,
        )
        self._payloads: dict[str, ImportPayload] = {}
        self._payload_lock = threading.Lock()
        self.quota = ApiQuota()

    # ------------------------------------------------------------------
    # Feed

    def refresh(self, sport_key: str) -> FeedRefresh:
        result = refresh_feed(sport_key, client_factory=self._feed_client_factory)
        if result.quota is not None:
            self.quota = result.quota
        if result.error is None:
            # Matches that left the feed for this sport stop being importable.
            with self._payload_lock:
                self._payloads = {
                    external_id: payload
                    for external_id, payload in self._payloads.items()
                    if payload.sport_key != sport_key
                }
                for payload in result.payloads:
                    self._payloads[payload.external_id] = payload
        return result

    def previews(self, payloads: list[ImportPayload]) -> list[PayloadPreview]:
        known = self.known_ids.get()
        return [
            PayloadPreview(
                payload=payload,
                status=self.state_store.status_for(payload.external_id, known),
                state=self.state_store.get(payload.external_id),
            )
            for payload in payloads
        ]

    def live_scores(self, sport_key: str) -> list[dict[str, Any]]:
        return fetch_live_scores(
            sport_key,
            days_from=self._settings.scores_days_from,
            client_factory=self._feed_client_factory,
        )

    def get_payload(self, external_id: str) -> ImportPayload:
        with self._payload_lock:
            payload = self._payloads.get(external_id)
        if payload is None:
            raise PayloadNotFound(external_id)
        return payload

    # ------------------------------------------------------------------
    # Imports

    def status(self, external_id: str) -> tuple[ImportStatus, ImportState | None]:
        state = self.state_store.get(external_id)
        if state is not None:
            return state.status, state
        return self.state_store.status_for(external_id, self.known_ids.get()), None

    def import_match(self, external_id: str, markets: Collection[str]) -> ImportOutcome:
        payload = self.get_payload(external_id)
        return self._execute(payload, markets, retry=False)

    def retry_import(self, external_id: str, markets: Collection[str]) -> ImportOutcome:
        payload = self.get_payload(external_id)
        return self._execute(payload, markets, retry=True)

    def _execute(
        self, payload: ImportPayload, markets: Collection[str], *, retry: bool
    ) -> ImportOutcome:
        with self._catalog_factory() as catalog:
            orchestrator = ImportOrchestrator(catalog, self.state_store)
            if retry:
                outcome = orchestrator.retry(payload, markets)
            else:
                outcome = orchestrator.import_match(payload, markets)

        if outcome.match_id is not None:
            self.known_ids.invalidate()
        try:
            self._record(payload, outcome)
        except SQLAlchemyError:
            logger.exception(
                "Could not record import history for {} ({})",
                payload.external_id,
                outcome.status.value,
            )
        return outcome

    def _record(self, payload: ImportPayload, outcome: ImportOutcome) -> None:
        if self._session_factory is None:
            return
        record = build_import_run_input(payload, outcome)
        with self._session_factory() as session:
            crud.record_import(session, record)

    # ------------------------------------------------------------------
    # History

    def history(
        self,
        *,
        external_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ImportRunRecord], int]:
        if self._session_factory is None:
            return [], 0
        with self._session_factory() as session:
            runs, total = crud.list_import_runs(
                session,
                external_id=external_id,
                status=status,
                limit=limit,
                offset=offset,
            )
            return [ImportRunRecord.model_validate(run) for run in runs], total


def build_import_run_input(payload: ImportPayload, outcome: ImportOutcome) -> ImportRunInput:
    return ImportRunInput(
        run_id=str(uuid4()),
        external_id=payload.external_id,
        sport_key=payload.sport_key or None,
        home_team=payload.home_team,
        away_team=payload.away_team,
        selected_markets=list(outcome.selected_markets),
        status=outcome.status.value,
        match_id=outcome.match_id,
        match_reused=outcome.match_reused,
        markets_attempted=outcome.markets_attempted,
        markets_created=outcome.markets_created,
        error_code=outcome.error_code.value if outcome.error_code else None,
        error_message=outcome.error_message,
        started_at=outcome.started_at,
        finished_at=outcome.finished_at,
        market_attempts=[
            MarketAttemptInput(
                market_key=attempt.market_key,
                label=attempt.label,
                runners=attempt.runners,
                succeeded=attempt.succeeded,
                catalog_market_id=attempt.catalog_market_id,
                error_message=attempt.error,
            )
            for attempt in outcome.attempts
        ],
    )
