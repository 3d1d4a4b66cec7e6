"""HTTP client for the platform catalog that owns matches and markets."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from importer.errors import CatalogConflict, CatalogError


def _isoformat_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Catalog responded with HTTP {response.status_code}"


def _unwrap(body: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope the catalog wraps most responses in."""

    while isinstance(body, dict) and "data" in body and not ("id" in body or "_id" in body):
        body = body["data"]
    return body


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _total_pages(body: Any) -> int | None:
    while isinstance(body, dict):
        if "totalPages" in body:
            return _as_int(body["totalPages"])
        body = body.get("data")
    return None


def _record_id(record: Any) -> str | None:
    if not isinstance(record, dict):
        return None
    raw_id = record.get("id") or record.get("_id")
    return str(raw_id) if raw_id else None


class CatalogClient:
    """Catalog admin API consumed by the import orchestrator."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or str(settings.catalog_base_url)
        token = api_token if api_token is not None else settings.catalog_api_token
        self.page_size = page_size or settings.catalog_match_page_size
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.catalog_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CatalogError(f"Catalog request failed: {exc}") from exc

    def create_match(
        self,
        *,
        team_a: str,
        team_b: str,
        sport: str,
        start_time: datetime | None,
        external_id: str,
    ) -> str:
        body: dict[str, Any] = {
            "teamA": team_a,
            "teamB": team_b,
            "sport": sport,
            "externalId": external_id,
        }
        if start_time is not None:
            body["startTime"] = _isoformat_utc(start_time)

        logger.info("Catalog POST /admin/matches externalId={}", external_id)
        response = self._request("POST", "/admin/matches", json=body)
        if response.status_code == httpx.codes.CONFLICT:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            existing = payload.get("matchId") if isinstance(payload, dict) else None
            if existing:
                raise CatalogConflict(str(existing), _error_message(response))
        if response.is_error:
            raise CatalogError(_error_message(response), status_code=response.status_code)

        try:
            match_id = _record_id(_unwrap(response.json()))
        except ValueError:
            match_id = None
        if match_id is None:
            raise CatalogError("Catalog created a match but returned no id")
        return match_id

    def create_market(
        self, *, match_id: str, name: str, runners: list[dict[str, Any]]
    ) -> str | None:
        body = {"matchId": match_id, "name": name, "runners": runners}
        logger.info("Catalog POST /admin/markets matchId={} name={}", match_id, name)
        response = self._request("POST", "/admin/markets", json=body)
        if response.is_error:
            raise CatalogError(_error_message(response), status_code=response.status_code)
        try:
            return _record_id(_unwrap(response.json()))
        except ValueError:
            return None

    def iter_matches(self):
        page = 1
        while True:
            response = self._request(
                "GET", "/sports/matches", params={"page": page, "limit": self.page_size}
            )
            if response.is_error:
                raise CatalogError(_error_message(response), status_code=response.status_code)

            try:
                body = response.json()
            except ValueError as exc:
                raise CatalogError("Catalog returned a non-JSON match listing") from exc
            total_pages = _total_pages(body)
            payload = _unwrap(body)
            if isinstance(payload, dict):
                candidates = (payload.get("matches"), payload.get("items"), payload.get("data"))
                records = next((value for value in candidates if isinstance(value, list)), [])
            elif isinstance(payload, list):
                records = payload
            else:
                records = []

            for record in records:
                if isinstance(record, dict):
                    yield record

            if total_pages is not None:
                # The catalog may cap `limit` below the requested page size.
                if page >= total_pages or not records:
                    break
            elif len(records) < self.page_size:
                break
            page += 1

    def list_external_ids(self) -> set[str]:
        """External ids of every catalog match; a hint for pre-flight duplicate labels."""

        return {
            str(record["externalId"])
            for record in self.iter_matches()
            if record.get("externalId")
        }

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
