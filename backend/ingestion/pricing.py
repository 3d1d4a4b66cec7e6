from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from app.domain import UNAVAILABLE_PRICE, ExternalQuote

_CENT = Decimal("0.01")
_MIN_LAY_SPREAD = Decimal("0.02")
_LAY_SPREAD_RATIO = Decimal("0.01")
_EVENS = Decimal("1")


def round_price(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def consensus(quotes: Iterable[ExternalQuote], market_key: str, outcome_name: str) -> Decimal:
    """Average every positive quote for the outcome, rounded half-up to cents.

    Returns ``0`` when no bookmaker prices the outcome.
    """

    prices = [
        quote.price
        for quote in quotes
        if quote.market_key == market_key
        and quote.outcome_name == outcome_name
        and quote.price > 0
    ]
    if not prices:
        return UNAVAILABLE_PRICE
    return round_price(sum(prices, Decimal("0")) / len(prices))


def derive_lay(back: Decimal) -> Decimal:
    """Lay price with a spread of at least two cents over the back price."""

    if back <= _EVENS:
        return UNAVAILABLE_PRICE
    lay = round_price(back + max(_MIN_LAY_SPREAD, back * _LAY_SPREAD_RATIO))
    # Sub-cent back prices can round the spread below the minimum.
    if lay - back < _MIN_LAY_SPREAD:
        lay += _CENT
    return lay
