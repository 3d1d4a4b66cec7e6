from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SportDefinition:
    key: str
    label: str
    group: str


SUPPORTED_SPORTS: tuple[SportDefinition, ...] = (
    SportDefinition("americanfootball_nfl", "NFL", "American Football"),
    SportDefinition("americanfootball_ncaaf", "NCAAF", "American Football"),
    SportDefinition("basketball_nba", "NBA", "Basketball"),
    SportDefinition("baseball_mlb", "MLB", "Baseball"),
    SportDefinition("icehockey_nhl", "NHL", "Ice Hockey"),
    SportDefinition("soccer_usa_mls", "MLS", "Soccer"),
    SportDefinition("soccer_epl", "EPL", "Soccer"),
    SportDefinition("cricket_test_match", "Cricket", "Cricket"),
    SportDefinition("tennis_atp_french_open", "ATP", "Tennis"),
    SportDefinition("mma_mixed_martial_arts", "MMA", "MMA"),
)

_BY_KEY = {sport.key: sport for sport in SUPPORTED_SPORTS}


def get_sport(sport_key: str) -> SportDefinition | None:
    return _BY_KEY.get(sport_key)


def catalog_sport_label(sport_key: str) -> str:
    """Sport name the catalog stores for a feed sport key; unknown keys pass through."""

    sport = _BY_KEY.get(sport_key)
    return sport.group if sport else sport_key
