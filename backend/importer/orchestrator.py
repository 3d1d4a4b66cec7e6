"""Drive the import of one feed match and its markets into the catalog."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from loguru import logger

from app.domain import CanonicalMarket, ImportPayload
from ingestion.markets import MARKET_ORDER

from .errors import CatalogConflict, CatalogError, ImportErrorCode, InvalidSelection
from .state import ImportState, ImportStateStore, ImportStatus


class CatalogGateway(Protocol):
    def create_match(
        self,
        *,
        team_a: str,
        team_b: str,
        sport: str,
        start_time: datetime | None,
        external_id: str,
    ) -> str:
        """Create the match and return its id; raise ``CatalogConflict`` when it exists."""

    def create_market(
        self, *, match_id: str, name: str, runners: list[dict[str, Any]]
    ) -> str | None:
        """Create one market and return its id; raise ``CatalogError`` on failure."""


@dataclass(slots=True)
class MarketAttempt:
    market_key: str
    label: str
    runners: list[dict[str, Any]]
    succeeded: bool
    catalog_market_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class ImportOutcome:
    """Result of one accepted import command: ``success`` or ``error``."""

    external_id: str
    status: ImportStatus
    selected_markets: list[str]
    started_at: datetime
    finished_at: datetime
    match_id: str | None = None
    match_reused: bool = False
    error_code: ImportErrorCode | None = None
    error_message: str | None = None
    attempts: list[MarketAttempt] = field(default_factory=list)

    @property
    def markets_attempted(self) -> int:
        return len(self.attempts)

    @property
    def markets_created(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.succeeded)

    @property
    def warnings(self) -> list[MarketAttempt]:
        return [attempt for attempt in self.attempts if not attempt.succeeded]

    def to_state(self) -> ImportState:
        return ImportState(
            status=self.status,
            match_id=self.match_id,
            error=self.error_message,
            markets_created=self.markets_created,
            warnings=tuple(
                f"{attempt.label}: {attempt.error}" for attempt in self.warnings
            ),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_selection(payload: ImportPayload, selected_keys: Iterable[str]) -> list[CanonicalMarket]:
    """Selected markets in fixed order; rejects empty or unknown selections."""

    requested = {key for key in selected_keys if key}
    if not requested:
        raise InvalidSelection(payload.external_id, "Select at least one market to import")

    unknown = sorted(requested - set(payload.market_keys))
    if unknown:
        raise InvalidSelection(
            payload.external_id,
            f"Markets not available for {payload.external_id}: {', '.join(unknown)}",
        )

    return [
        market
        for key in MARKET_ORDER
        if key in requested and (market := payload.market(key)) is not None
    ]


class ImportOrchestrator:
    """Resolve-or-create the match, then create each selected market in turn.

    Market calls are strictly sequential so each failure is attributable to
    one market and never races the catalog's uniqueness constraints.
    """

    def __init__(self, catalog: CatalogGateway, state_store: ImportStateStore) -> None:
        self._catalog = catalog
        self._state = state_store

    def classify(self, external_id: str, known_external_ids: Collection[str] = ()) -> ImportStatus:
        return self._state.status_for(external_id, known_external_ids)

    def import_match(self, payload: ImportPayload, selected_keys: Collection[str]) -> ImportOutcome:
        markets = resolve_selection(payload, selected_keys)
        self._state.begin(payload.external_id)
        return self._run(payload, markets)

    def retry(self, payload: ImportPayload, selected_keys: Collection[str]) -> ImportOutcome:
        markets = resolve_selection(payload, selected_keys)
        self._state.begin_retry(payload.external_id)
        return self._run(payload, markets)

    def _run(self, payload: ImportPayload, markets: list[CanonicalMarket]) -> ImportOutcome:
        outcome = ImportOutcome(
            external_id=payload.external_id,
            status=ImportStatus.IMPORTING,
            selected_markets=[market.key for market in markets],
            started_at=_utcnow(),
            finished_at=_utcnow(),
        )
        try:
            self._execute(payload, markets, outcome)
        finally:
            outcome.finished_at = _utcnow()
            if outcome.status is ImportStatus.IMPORTING:
                # Unexpected exception escaped; never leave the id stuck in flight.
                outcome.status = ImportStatus.ERROR
                outcome.error_code = (
                    ImportErrorCode.MATCH_CREATION_FAILED
                    if outcome.match_id is None
                    else ImportErrorCode.TOTAL_IMPORT_FAILURE
                )
                outcome.error_message = "Import aborted unexpectedly"
            self._state.complete(payload.external_id, outcome.to_state())
        return outcome

    def _execute(
        self, payload: ImportPayload, markets: list[CanonicalMarket], outcome: ImportOutcome
    ) -> None:
        try:
            outcome.match_id = self._catalog.create_match(
                team_a=payload.home_team,
                team_b=payload.away_team,
                sport=payload.sport_label,
                start_time=payload.commence_time,
                external_id=payload.external_id,
            )
            logger.info("Created match {} for {}", outcome.match_id, payload.external_id)
        except CatalogConflict as conflict:
            outcome.match_id = conflict.existing_match_id
            outcome.match_reused = True
            logger.info(
                "Match for {} already exists as {}; adding markets to it",
                payload.external_id,
                outcome.match_id,
            )
        except CatalogError as exc:
            outcome.status = ImportStatus.ERROR
            outcome.error_code = ImportErrorCode.MATCH_CREATION_FAILED
            outcome.error_message = exc.message
            logger.error("Match creation failed for {}: {}", payload.external_id, exc.message)
            return

        for market in markets:
            if not market.runners:
                continue
            outcome.attempts.append(self._create_market(outcome.match_id, market))

        if outcome.markets_attempted > 0 and outcome.markets_created == 0:
            outcome.status = ImportStatus.ERROR
            outcome.error_code = ImportErrorCode.TOTAL_IMPORT_FAILURE
            outcome.error_message = "All markets failed to create"
            logger.error(
                "Import of {} failed: none of {} market(s) were created",
                payload.external_id,
                outcome.markets_attempted,
            )
            return

        outcome.status = ImportStatus.SUCCESS
        logger.info(
            "Imported {} vs {} ({}): {} market(s) created, {} skipped",
            payload.home_team,
            payload.away_team,
            payload.external_id,
            outcome.markets_created,
            len(outcome.warnings),
        )

    def _create_market(self, match_id: str, market: CanonicalMarket) -> MarketAttempt:
        runners = [runner.to_catalog_runner() for runner in market.runners]
        try:
            market_id = self._catalog.create_market(
                match_id=match_id, name=market.label, runners=runners
            )
        except CatalogError as exc:
            logger.warning(
                "{}: market \"{}\" skipped: {}",
                ImportErrorCode.MARKET_CREATION_FAILED.value,
                market.label,
                exc.message,
            )
            return MarketAttempt(
                market_key=market.key,
                label=market.label,
                runners=runners,
                succeeded=False,
                error=exc.message,
            )
        return MarketAttempt(
            market_key=market.key,
            label=market.label,
            runners=runners,
            succeeded=True,
            catalog_market_id=market_id,
        )
