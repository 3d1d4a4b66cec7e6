"""Import orchestration: lifecycle tracking and catalog writes."""

from .errors import (
    CatalogConflict,
    CatalogError,
    FeedUnavailable,
    ImportErrorCode,
    ImportInProgress,
    ImportRejected,
    InvalidSelection,
    OddsImportError,
    RetryNotAllowed,
    RetryRequired,
)
from .orchestrator import (
    CatalogGateway,
    ImportOrchestrator,
    ImportOutcome,
    MarketAttempt,
    resolve_selection,
)
from .state import ImportState, ImportStateStore, ImportStatus

__all__ = [
    "CatalogConflict",
    "CatalogError",
    "CatalogGateway",
    "FeedUnavailable",
    "ImportErrorCode",
    "ImportInProgress",
    "ImportOrchestrator",
    "ImportOutcome",
    "ImportRejected",
    "ImportState",
    "ImportStateStore",
    "ImportStatus",
    "InvalidSelection",
    "MarketAttempt",
    "OddsImportError",
    "RetryNotAllowed",
    "RetryRequired",
    "resolve_selection",
]
