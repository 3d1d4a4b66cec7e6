"""Repository abstractions for database interactions."""

from .import_models import ImportRunInput, MarketAttemptInput
from .import_repository import ImportRepository

__all__ = [
    "ImportRepository",
    "ImportRunInput",
    "MarketAttemptInput",
]
