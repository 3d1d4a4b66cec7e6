from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ingestion.normalize import (
    MalformedMatch,
    build_import_payload,
    build_import_payloads,
    normalize_quotes,
)


def test_normalize_quotes_flattens_bookmaker_tree(sample_match):
    quotes = normalize_quotes(sample_match["bookmakers"])

    assert len(quotes) == 14
    first = quotes[0]
    assert first.bookmaker_id == "draftkings"
    assert first.market_key == "h2h"
    assert first.outcome_name == "Buffalo Bills"
    assert first.price == Decimal("2.1")
    assert first.point is None

    spread = next(q for q in quotes if q.market_key == "spreads" and q.bookmaker_id == "fanduel")
    assert spread.point == Decimal("2.5")


def test_normalize_quotes_skips_unsupported_and_invalid_entries():
    raw = [
        {
            "key": "book",
            "markets": [
                {"key": "outrights", "outcomes": [{"name": "Team", "price": 5.0}]},
                {
                    "key": "h2h",
                    "outcomes": [
                        {"name": "Home", "price": 1.5},
                        {"name": "Home", "price": 9.9},
                        {"name": "Away", "price": -2},
                        {"name": "Draw", "price": "nan"},
                        {"name": "", "price": 3.0},
                        "garbage",
                    ],
                },
            ],
        },
        {"title": "", "markets": []},
        "not-a-bookmaker",
    ]

    quotes = normalize_quotes(raw)

    assert [(q.outcome_name, q.price) for q in quotes] == [("Home", Decimal("1.5"))]


def test_build_import_payload_from_sample(sample_match):
    payload = build_import_payload(sample_match)

    assert payload.external_id == "e912304de2b2ce35b473ce2ecd3d1502"
    assert payload.home_team == "Kansas City Chiefs"
    assert payload.away_team == "Buffalo Bills"
    assert payload.sport_key == "americanfootball_nfl"
    assert payload.sport_label == "American Football"
    assert payload.commence_time == datetime(2026, 10, 19, 17, 0, tzinfo=timezone.utc)
    assert payload.bookmaker_count == 3
    assert payload.market_keys == ["h2h", "spreads", "totals"]

    h2h = payload.market("h2h")
    assert [(r.name, r.back_price, r.lay_price) for r in h2h.runners] == [
        ("Kansas City Chiefs", Decimal("1.95"), Decimal("1.97")),
        ("Buffalo Bills", Decimal("2.10"), Decimal("2.12")),
    ]

    spreads = payload.market("spreads")
    assert spreads.label == "Spread (-1.5)"
    assert [r.name for r in spreads.runners] == [
        "Kansas City Chiefs -1.5",
        "Buffalo Bills +1.5",
    ]

    totals = payload.market("totals")
    assert totals.label == "Total O/U 47.5"
    assert [(r.name, r.back_price, r.lay_price) for r in totals.runners] == [
        ("Over 47.5", Decimal("1.89"), Decimal("1.91")),
        ("Under 47.5", Decimal("1.93"), Decimal("1.95")),
    ]


def test_build_import_payload_omits_totals_without_points(sample_odds_payload):
    payload = build_import_payload(sample_odds_payload[1])

    assert payload.market_keys == ["h2h"]
    assert [r.name for r in payload.market("h2h").runners] == [
        "Green Bay Packers",
        "Detroit Lions",
    ]


def test_build_import_payload_prefers_explicit_sport_key(sample_match):
    payload = build_import_payload(sample_match, sport_key="soccer_epl")

    assert payload.sport_key == "soccer_epl"
    assert payload.sport_label == "Soccer"


def test_build_import_payload_rejects_missing_identity():
    with pytest.raises(MalformedMatch):
        build_import_payload({"id": "abc", "home_team": "Home"})


def test_build_import_payloads_skips_malformed_matches(sample_odds_payload):
    payloads = build_import_payloads(sample_odds_payload + ["junk"], "americanfootball_nfl")

    assert [payload.external_id for payload in payloads] == [
        "e912304de2b2ce35b473ce2ecd3d1502",
        "4acd2d9f4a4c9a31f0c6b61dd84b5b1e",
    ]


def test_unknown_sport_key_passes_through_as_label(sample_match):
    payload = build_import_payload(sample_match, sport_key="lacrosse_pll")

    assert payload.sport_label == "lacrosse_pll"
