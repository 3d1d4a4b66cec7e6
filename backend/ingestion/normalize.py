from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser
from loguru import logger

from app.domain import ExternalQuote, ImportPayload

from .markets import MARKET_ORDER, build_markets
from .sports import catalog_sport_label


class MalformedMatch(ValueError):
    """Raised when a feed match lacks the fields needed to identify it."""


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        # Route through str so float prices keep their printed precision.
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def normalize_quotes(raw_bookmakers: list[Any]) -> list[ExternalQuote]:
    """Flatten the nested bookmaker → market → outcome tree into quotes."""

    quotes: list[ExternalQuote] = []
    for bookmaker in raw_bookmakers:
        if not isinstance(bookmaker, dict):
            continue
        bookmaker_id = str(bookmaker.get("key") or bookmaker.get("title") or "")
        if not bookmaker_id:
            continue
        for market in _as_list(bookmaker.get("markets")):
            if not isinstance(market, dict):
                continue
            market_key = market.get("key")
            if market_key not in MARKET_ORDER:
                continue
            seen_outcomes: set[str] = set()
            for outcome in _as_list(market.get("outcomes")):
                if not isinstance(outcome, dict) or not outcome.get("name"):
                    continue
                name = str(outcome["name"])
                # A bookmaker prices each outcome once; later duplicates are ignored.
                if name in seen_outcomes:
                    continue
                price = _parse_decimal(outcome.get("price"))
                if price is None or price < 0:
                    continue
                seen_outcomes.add(name)
                quotes.append(
                    ExternalQuote(
                        bookmaker_id=bookmaker_id,
                        market_key=market_key,
                        outcome_name=name,
                        price=price,
                        point=_parse_decimal(outcome.get("point")),
                    )
                )
    return quotes


def _template_bookmaker(raw_bookmakers: list[Any]) -> str | None:
    if not raw_bookmakers or not isinstance(raw_bookmakers[0], dict):
        return None
    first = raw_bookmakers[0]
    return str(first.get("key") or first.get("title") or "") or None


def build_import_payload(raw_match: dict[str, Any], sport_key: str | None = None) -> ImportPayload:
    external_id = raw_match.get("id")
    home_team = raw_match.get("home_team")
    away_team = raw_match.get("away_team")
    if not external_id or not home_team or not away_team:
        raise MalformedMatch("feed match is missing id, home_team or away_team")

    resolved_sport_key = sport_key or str(raw_match.get("sport_key") or "")
    raw_bookmakers = _as_list(raw_match.get("bookmakers"))
    quotes = normalize_quotes(raw_bookmakers)
    markets = build_markets(
        quotes,
        str(home_team),
        str(away_team),
        template_bookmaker=_template_bookmaker(raw_bookmakers),
    )

    return ImportPayload(
        external_id=str(external_id),
        home_team=str(home_team),
        away_team=str(away_team),
        sport_label=catalog_sport_label(resolved_sport_key),
        sport_key=resolved_sport_key,
        commence_time=_parse_datetime(raw_match.get("commence_time")),
        markets=markets,
        quotes=quotes,
        bookmaker_count=len(raw_bookmakers),
        raw_data=raw_match,
    )


def build_import_payloads(raw_matches: list[Any], sport_key: str | None = None) -> list[ImportPayload]:
    payloads: list[ImportPayload] = []
    for raw_match in raw_matches:
        if not isinstance(raw_match, dict):
            continue
        try:
            payloads.append(build_import_payload(raw_match, sport_key))
        except MalformedMatch as exc:
            logger.warning("Skipping feed match {}: {}", raw_match.get("id"), exc)
    return payloads
