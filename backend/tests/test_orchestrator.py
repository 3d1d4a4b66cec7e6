from __future__ import annotations

from collections.abc import Iterable

import pytest

from importer import (
    CatalogConflict,
    CatalogError,
    ImportErrorCode,
    ImportInProgress,
    ImportOrchestrator,
    ImportState,
    ImportStateStore,
    ImportStatus,
    InvalidSelection,
    RetryNotAllowed,
    RetryRequired,
    resolve_selection,
)
from ingestion.normalize import build_import_payload


class FakeCatalog:
    """In-memory catalog that enforces external id and market name uniqueness."""

    def __init__(
        self,
        *,
        fail_markets: Iterable[str] = (),
        fail_match: bool = False,
        existing: dict[str, str] | None = None,
    ) -> None:
        self.fail_markets = set(fail_markets)
        self.fail_match = fail_match
        self.matches: dict[str, str] = dict(existing or {})
        self.markets: dict[str, set[str]] = {}
        self.match_calls: list[dict] = []
        self.market_calls: list[dict] = []

    def create_match(self, *, team_a, team_b, sport, start_time, external_id):
        self.match_calls.append(
            {"team_a": team_a, "team_b": team_b, "sport": sport, "external_id": external_id}
        )
        if self.fail_match:
            raise CatalogError("Catalog responded with HTTP 500", status_code=500)
        if external_id in self.matches:
            raise CatalogConflict(self.matches[external_id])
        match_id = f"match-{len(self.matches) + 1}"
        self.matches[external_id] = match_id
        return match_id

    def create_market(self, *, match_id, name, runners):
        self.market_calls.append({"match_id": match_id, "name": name, "runners": runners})
        if name in self.fail_markets:
            raise CatalogError(f"Could not create {name}", status_code=500)
        names = self.markets.setdefault(match_id, set())
        if name in names:
            raise CatalogError("Market already exists", status_code=409)
        names.add(name)
        return f"{match_id}:{len(names)}"


@pytest.fixture
def payload(sample_match):
    return build_import_payload(sample_match)


@pytest.fixture
def store():
    return ImportStateStore()


ALL_MARKETS = ["h2h", "spreads", "totals"]


def test_import_creates_match_then_markets_in_order(payload, store):
    catalog = FakeCatalog()
    orchestrator = ImportOrchestrator(catalog, store)

    outcome = orchestrator.import_match(payload, ["totals", "h2h", "spreads"])

    assert outcome.status is ImportStatus.SUCCESS
    assert outcome.match_id == "match-1"
    assert outcome.match_reused is False
    assert outcome.markets_created == 3
    assert outcome.warnings == []
    assert catalog.match_calls == [
        {
            "team_a": "Kansas City Chiefs",
            "team_b": "Buffalo Bills",
            "sport": "American Football",
            "external_id": payload.external_id,
        }
    ]
    assert [call["name"] for call in catalog.market_calls] == [
        "Match Winner",
        "Spread (-1.5)",
        "Total O/U 47.5",
    ]
    assert catalog.market_calls[0]["runners"][0] == {
        "name": "Kansas City Chiefs",
        "backOdds": 1.95,
        "layOdds": 1.97,
    }

    state = store.get(payload.external_id)
    assert state.status is ImportStatus.SUCCESS
    assert state.match_id == "match-1"
    assert state.markets_created == 3


def test_conflict_reuses_existing_match(payload, store):
    catalog = FakeCatalog(existing={payload.external_id: "existing-42"})
    orchestrator = ImportOrchestrator(catalog, store)

    outcome = orchestrator.import_match(payload, ["h2h"])

    assert outcome.status is ImportStatus.SUCCESS
    assert outcome.match_id == "existing-42"
    assert outcome.match_reused is True
    assert catalog.matches == {payload.external_id: "existing-42"}
    assert catalog.market_calls[0]["match_id"] == "existing-42"


def test_partial_market_failure_is_success_with_warnings(payload, store):
    catalog = FakeCatalog(fail_markets={"Spread (-1.5)", "Total O/U 47.5"})
    orchestrator = ImportOrchestrator(catalog, store)

    outcome = orchestrator.import_match(payload, ALL_MARKETS)

    assert outcome.status is ImportStatus.SUCCESS
    assert outcome.markets_attempted == 3
    assert outcome.markets_created == 1
    assert [warning.market_key for warning in outcome.warnings] == ["spreads", "totals"]
    assert outcome.error_code is None

    state = store.get(payload.external_id)
    assert state.markets_created == 1
    assert state.warnings == (
        "Spread (-1.5): Could not create Spread (-1.5)",
        "Total O/U 47.5: Could not create Total O/U 47.5",
    )


def test_every_market_failing_is_total_import_failure(payload, store):
    catalog = FakeCatalog(fail_markets={"Match Winner", "Spread (-1.5)", "Total O/U 47.5"})
    orchestrator = ImportOrchestrator(catalog, store)

    outcome = orchestrator.import_match(payload, ALL_MARKETS)

    assert outcome.status is ImportStatus.ERROR
    assert outcome.error_code is ImportErrorCode.TOTAL_IMPORT_FAILURE
    assert outcome.match_id == "match-1"
    assert outcome.markets_attempted == 3
    assert store.get(payload.external_id).status is ImportStatus.ERROR


def test_match_creation_failure_makes_no_market_calls(payload, store):
    catalog = FakeCatalog(fail_match=True)
    orchestrator = ImportOrchestrator(catalog, store)

    outcome = orchestrator.import_match(payload, ALL_MARKETS)

    assert outcome.status is ImportStatus.ERROR
    assert outcome.error_code is ImportErrorCode.MATCH_CREATION_FAILED
    assert outcome.error_message == "Catalog responded with HTTP 500"
    assert outcome.match_id is None
    assert catalog.market_calls == []
    assert store.get(payload.external_id).error == "Catalog responded with HTTP 500"


def test_second_import_after_success_reports_existing_markets_as_warnings(payload, store):
    catalog = FakeCatalog()
    orchestrator = ImportOrchestrator(catalog, store)
    first = orchestrator.import_match(payload, ["h2h"])

    second = orchestrator.import_match(payload, ["h2h", "totals"])

    assert second.status is ImportStatus.SUCCESS
    assert second.match_id == first.match_id
    assert second.match_reused is True
    assert second.markets_created == 1
    assert [warning.error for warning in second.warnings] == ["Market already exists"]
    assert len(catalog.matches) == 1
    assert catalog.markets[first.match_id] == {"Match Winner", "Total O/U 47.5"}


@pytest.mark.parametrize("selection", [[], [""], ["h2h", "outrights"]])
def test_invalid_selection_never_reaches_catalog(payload, store, selection):
    catalog = FakeCatalog()
    orchestrator = ImportOrchestrator(catalog, store)

    with pytest.raises(InvalidSelection):
        orchestrator.import_match(payload, selection)

    assert catalog.match_calls == []
    assert store.get(payload.external_id) is None


def test_selection_of_market_not_built_is_invalid(sample_odds_payload, store):
    payload = build_import_payload(sample_odds_payload[1])

    with pytest.raises(InvalidSelection) as excinfo:
        resolve_selection(payload, ["totals"])

    assert "totals" in excinfo.value.message


def test_in_flight_import_is_rejected(payload, store):
    catalog = FakeCatalog()
    store.begin(payload.external_id)
    orchestrator = ImportOrchestrator(catalog, store)

    with pytest.raises(ImportInProgress):
        orchestrator.import_match(payload, ["h2h"])

    assert catalog.match_calls == []


def test_retry_after_error_runs_again(payload, store):
    failing = FakeCatalog(fail_match=True)
    ImportOrchestrator(failing, store).import_match(payload, ["h2h"])

    outcome = ImportOrchestrator(FakeCatalog(), store).retry(payload, ["h2h"])

    assert outcome.status is ImportStatus.SUCCESS
    assert store.get(payload.external_id).status is ImportStatus.SUCCESS


def test_retry_rejected_unless_failed(payload, store):
    orchestrator = ImportOrchestrator(FakeCatalog(), store)

    with pytest.raises(RetryNotAllowed):
        orchestrator.retry(payload, ["h2h"])

    orchestrator.import_match(payload, ["h2h"])
    with pytest.raises(RetryNotAllowed):
        orchestrator.retry(payload, ["h2h"])


def test_unexpected_exception_never_leaves_id_importing(payload, store):
    class ExplodingCatalog(FakeCatalog):
        def create_market(self, **kwargs):
            raise RuntimeError("socket closed")

    orchestrator = ImportOrchestrator(ExplodingCatalog(), store)

    with pytest.raises(RuntimeError):
        orchestrator.import_match(payload, ["h2h"])

    state = store.get(payload.external_id)
    assert state.status is ImportStatus.ERROR
    assert state.match_id == "match-1"


def test_classify_uses_known_ids_hint(store):
    orchestrator = ImportOrchestrator(FakeCatalog(), store)
    store.complete("ext-2", ImportState(status=ImportStatus.ERROR, error="boom"))

    assert orchestrator.classify("ext-1", {"ext-1"}) is ImportStatus.DUPLICATE
    assert orchestrator.classify("ext-2", {"ext-2"}) is ImportStatus.ERROR
    assert orchestrator.classify("ext-3", {"ext-1"}) is ImportStatus.IDLE


def test_plain_import_after_error_is_rejected_without_catalog_calls(payload, store):
    ImportOrchestrator(FakeCatalog(fail_match=True), store).import_match(payload, ["h2h"])
    catalog = FakeCatalog()
    orchestrator = ImportOrchestrator(catalog, store)

    with pytest.raises(RetryRequired):
        orchestrator.import_match(payload, ["h2h"])

    assert catalog.match_calls == []
    assert store.get(payload.external_id).status is ImportStatus.ERROR

    outcome = orchestrator.retry(payload, ["h2h"])
    assert outcome.status is ImportStatus.SUCCESS
