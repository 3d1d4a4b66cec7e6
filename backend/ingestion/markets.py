"""Canonical market assembly from bookmaker quotes.

The first bookmaker in the feed is the structural template: it decides which
point values (handicap line, total line) a market is built around. Prices
are averaged over every bookmaker.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from app.domain import CanonicalMarket, ConsensusOutcome, ExternalQuote

from .pricing import consensus, derive_lay

H2H = "h2h"
SPREADS = "spreads"
TOTALS = "totals"
MARKET_ORDER = (H2H, SPREADS, TOTALS)

DRAW = "Draw"
OVER = "Over"
UNDER = "Under"
MATCH_WINNER_LABEL = "Match Winner"


def format_point(point: Decimal, *, signed: bool = False) -> str:
    text = format(point.normalize(), "f")
    if signed and point > 0:
        return f"+{text}"
    return text


def _outcome(
    quotes: Sequence[ExternalQuote],
    market_key: str,
    outcome_name: str,
    *,
    display_name: str | None = None,
    point: Decimal | None = None,
) -> ConsensusOutcome:
    back = consensus(quotes, market_key, outcome_name)
    return ConsensusOutcome(
        name=display_name or outcome_name,
        back_price=back,
        lay_price=derive_lay(back),
        point=point,
    )


def _template_quote(
    quotes: Sequence[ExternalQuote],
    template_bookmaker: str | None,
    market_key: str,
    outcome_name: str,
) -> ExternalQuote | None:
    if template_bookmaker is None:
        return None
    return next(
        (
            quote
            for quote in quotes
            if quote.bookmaker_id == template_bookmaker
            and quote.market_key == market_key
            and quote.outcome_name == outcome_name
        ),
        None,
    )


def build_h2h_market(
    quotes: Sequence[ExternalQuote], home_team: str, away_team: str
) -> CanonicalMarket | None:
    candidates = [
        _outcome(quotes, H2H, home_team),
        _outcome(quotes, H2H, away_team),
        _outcome(quotes, H2H, DRAW),
    ]
    runners = tuple(runner for runner in candidates if runner.back_price > 0)
    if len(runners) < 2:
        return None
    return CanonicalMarket(key=H2H, label=MATCH_WINNER_LABEL, runners=runners)


def build_spreads_market(
    quotes: Sequence[ExternalQuote],
    home_team: str,
    away_team: str,
    template_bookmaker: str | None,
) -> CanonicalMarket | None:
    home = _template_quote(quotes, template_bookmaker, SPREADS, home_team)
    away = _template_quote(quotes, template_bookmaker, SPREADS, away_team)
    if home is None or away is None or home.point is None or away.point is None:
        return None

    runners = (
        _outcome(
            quotes,
            SPREADS,
            home_team,
            display_name=f"{home_team} {format_point(home.point, signed=True)}",
            point=home.point,
        ),
        _outcome(
            quotes,
            SPREADS,
            away_team,
            display_name=f"{away_team} {format_point(away.point, signed=True)}",
            point=away.point,
        ),
    )
    label = f"Spread ({format_point(home.point, signed=True)})"
    return CanonicalMarket(key=SPREADS, label=label, runners=runners)


def build_totals_market(
    quotes: Sequence[ExternalQuote], template_bookmaker: str | None
) -> CanonicalMarket | None:
    over = _template_quote(quotes, template_bookmaker, TOTALS, OVER)
    under = _template_quote(quotes, template_bookmaker, TOTALS, UNDER)
    if over is None or under is None or over.point is None:
        return None

    line = format_point(over.point)
    runners = (
        _outcome(quotes, TOTALS, OVER, display_name=f"{OVER} {line}", point=over.point),
        _outcome(quotes, TOTALS, UNDER, display_name=f"{UNDER} {line}", point=over.point),
    )
    return CanonicalMarket(key=TOTALS, label=f"Total O/U {line}", runners=runners)


def build_markets(
    quotes: Sequence[ExternalQuote],
    home_team: str,
    away_team: str,
    template_bookmaker: str | None = None,
) -> list[CanonicalMarket]:
    """Return the qualifying markets in fixed h2h, spreads, totals order."""

    if template_bookmaker is None and quotes:
        template_bookmaker = quotes[0].bookmaker_id

    candidates = (
        build_h2h_market(quotes, home_team, away_team),
        build_spreads_market(quotes, home_team, away_team, template_bookmaker),
        build_totals_market(quotes, template_bookmaker),
    )
    return [market for market in candidates if market is not None]
