"""Error types raised by the flight reservation core."""
from __future__ import annotations


class FlightsDBError(RuntimeError):
    """Base class for every error surfaced to callers."""


class StoreUnavailable(FlightsDBError):
    """Raised when the database cannot be reached or rejects an operation."""


class CatalogUnavailable(StoreUnavailable):
    """Raised when reading the flight catalog fails."""


class ConflictRetryExhausted(FlightsDBError):
    """Raised when a transaction kept conflicting with concurrent writers.

    The condition is transient; the whole call may be retried.
    """


class TransactionTimeout(ConflictRetryExhausted):
    """Raised when a transaction could not finish within its time budget."""


class InvalidInput(FlightsDBError, ValueError):
    """Raised when arguments are rejected before anything is written."""


__all__ = [
    "FlightsDBError",
    "StoreUnavailable",
    "CatalogUnavailable",
    "ConflictRetryExhausted",
    "TransactionTimeout",
    "InvalidInput",
]
