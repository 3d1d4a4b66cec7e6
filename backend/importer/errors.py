"""Failure taxonomy for the odds import workflow."""

from __future__ import annotations

from enum import Enum


class ImportErrorCode(str, Enum):
    FEED_UNAVAILABLE = "FeedUnavailable"
    INVALID_SELECTION = "InvalidSelection"
    MATCH_CREATION_FAILED = "MatchCreationFailed"
    MARKET_CREATION_FAILED = "MarketCreationFailed"
    TOTAL_IMPORT_FAILURE = "TotalImportFailure"


class OddsImportError(Exception):
    code: ImportErrorCode | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FeedUnavailable(OddsImportError):
    code = ImportErrorCode.FEED_UNAVAILABLE


class ImportRejected(OddsImportError):
    """Command refused locally; nothing was sent to the catalog."""

    def __init__(self, external_id: str, message: str) -> None:
        super().__init__(message)
        self.external_id = external_id


class InvalidSelection(ImportRejected):
    code = ImportErrorCode.INVALID_SELECTION


class ImportInProgress(ImportRejected):
    pass


class RetryNotAllowed(ImportRejected):
    pass


class RetryRequired(ImportRejected):
    """The last import failed; only an explicit retry may start another."""


class CatalogError(Exception):
    """A catalog call failed (transport error or non-success response)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CatalogConflict(CatalogError):
    """The external id is already registered; carries the existing match id."""

    def __init__(self, existing_match_id: str, message: str = "Match already exists") -> None:
        super().__init__(message, status_code=409)
        self.existing_match_id = existing_match_id
