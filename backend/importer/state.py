"""Per-external-id import lifecycle tracking."""

from __future__ import annotations

import threading
from collections.abc import Collection
from dataclasses import dataclass, field
from enum import Enum

from .errors import ImportInProgress, RetryNotAllowed, RetryRequired


class ImportStatus(str, Enum):
    IDLE = "idle"
    IMPORTING = "importing"
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ImportState:
    status: ImportStatus
    match_id: str | None = None
    error: str | None = None
    markets_created: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)


class ImportStateStore:
    """Lifecycle map keyed by external match id.

    Entries exist only for ids an import was attempted for. Every
    read-check-write happens under one lock so concurrent commands for the
    same id cannot both pass the in-flight guard.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[str, ImportState] = {}

    def get(self, external_id: str) -> ImportState | None:
        with self._lock:
            return self._states.get(external_id)

    def status_for(
        self, external_id: str, known_external_ids: Collection[str] = ()
    ) -> ImportStatus:
        """Status for display; never-attempted ids already in the catalog read as duplicate."""

        state = self.get(external_id)
        if state is not None:
            return state.status
        if external_id in known_external_ids:
            return ImportStatus.DUPLICATE
        return ImportStatus.IDLE

    def begin(self, external_id: str) -> None:
        with self._lock:
            current = self._states.get(external_id)
            if current is not None and current.status is ImportStatus.IMPORTING:
                raise ImportInProgress(
                    external_id, f"An import for {external_id} is already running"
                )
            if current is not None and current.status is ImportStatus.ERROR:
                raise RetryRequired(
                    external_id, f"The last import of {external_id} failed; retry it instead"
                )
            self._states[external_id] = ImportState(status=ImportStatus.IMPORTING)

    def begin_retry(self, external_id: str) -> None:
        with self._lock:
            current = self._states.get(external_id)
            status = current.status if current else ImportStatus.IDLE
            if status is ImportStatus.IMPORTING:
                raise ImportInProgress(
                    external_id, f"An import for {external_id} is already running"
                )
            if status is not ImportStatus.ERROR:
                raise RetryNotAllowed(
                    external_id,
                    f"Only failed imports can be retried; {external_id} is {status.value}",
                )
            self._states[external_id] = ImportState(status=ImportStatus.IMPORTING)

    def complete(self, external_id: str, state: ImportState) -> None:
        with self._lock:
            self._states[external_id] = state

    def snapshot(self) -> dict[str, ImportState]:
        with self._lock:
            return dict(self._states)
