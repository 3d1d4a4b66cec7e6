"""Domain models representing normalized odds data."""

from .models import (
    UNAVAILABLE_PRICE,
    CanonicalMarket,
    ConsensusOutcome,
    ExternalQuote,
    ImportPayload,
)

__all__ = [
    "UNAVAILABLE_PRICE",
    "CanonicalMarket",
    "ConsensusOutcome",
    "ExternalQuote",
    "ImportPayload",
]
