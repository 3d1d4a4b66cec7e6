import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from loguru import logger

from app.core.config import get_settings
from app.db import init_db
from app.services.import_service import ImportService
from importer import ImportRejected, ImportStatus
from ingestion.markets import MARKET_ORDER


def _parse_market_keys(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    keys = [token.strip() for token in raw.split(",") if token.strip()]
    unknown = sorted(set(keys) - set(MARKET_ORDER))
    if unknown:
        raise argparse.ArgumentTypeError(f"unsupported market keys: {', '.join(unknown)}")
    return keys


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Preview and import odds feed matches into the catalog")
    parser.add_argument(
        "--sport",
        default=settings.default_sport_key,
        help="Feed sport key (default: %(default)s)",
    )
    parser.add_argument("--list", action="store_true", help="List importable matches and exit")
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--import",
        dest="external_ids",
        action="append",
        default=None,
        metavar="EXTERNAL_ID",
        help="External match id to import (repeatable)",
    )
    target.add_argument("--all", action="store_true", help="Import every match in the feed")
    parser.add_argument(
        "--markets",
        type=_parse_market_keys,
        default=None,
        metavar="KEYS",
        help="Comma-separated market keys to import (default: every built market)",
    )
    return parser.parse_args(argv)


def _print_preview(service: ImportService, payloads) -> None:
    for preview in service.previews(payloads):
        payload = preview.payload
        markets = ", ".join(market.label for market in payload.markets) or "no markets"
        print(
            f"{payload.external_id}  {payload.home_team} vs {payload.away_team}  "
            f"[{preview.status.value}]  {payload.bookmaker_count} books  {markets}"
        )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    init_db()
    service = ImportService()

    refresh = service.refresh(args.sport)
    if refresh.error is not None:
        logger.error("{}", refresh.error.message)
        return 1

    if args.list or not (args.all or args.external_ids):
        _print_preview(service, refresh.payloads)
        return 0

    if args.all:
        external_ids = [payload.external_id for payload in refresh.payloads]
    else:
        external_ids = args.external_ids

    failures = 0
    for external_id in external_ids:
        try:
            payload = service.get_payload(external_id)
        except LookupError as exc:
            logger.warning("{}", exc)
            failures += 1
            continue
        markets = args.markets or payload.market_keys
        try:
            outcome = service.import_match(external_id, markets)
        except ImportRejected as exc:
            logger.warning("Import of {} rejected: {}", external_id, exc.message)
            failures += 1
            continue
        if outcome.status is ImportStatus.SUCCESS:
            print(
                f"{external_id}: match {outcome.match_id}, "
                f"{outcome.markets_created} market(s) created, {len(outcome.warnings)} skipped"
            )
        else:
            failures += 1
            print(f"{external_id}: {outcome.error_code.value}: {outcome.error_message}")

    logger.info("Processed {} import(s), {} failed", len(external_ids), failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
