"""Flight itinerary search and capacity-checked reservations."""
from typing import Any

from .catalog import FlightInfo
from .config import Settings
from .database import create_session_factory, init_db, session_scope
from .dataset import generate_sample_data
from .errors import (
    CatalogUnavailable,
    ConflictRetryExhausted,
    FlightsDBError,
    InvalidInput,
    StoreUnavailable,
    TransactionTimeout,
)
from .search import Itinerary, search
from .services import (
    CancellationResult,
    ReservationOutcome,
    UserInfo,
    add_carrier,
    add_flight,
    add_user,
    cancel,
    get_reservations,
    log_in,
    reserve,
)


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Settings",
    "FlightInfo",
    "Itinerary",
    "ReservationOutcome",
    "CancellationResult",
    "UserInfo",
    "FlightsDBError",
    "StoreUnavailable",
    "CatalogUnavailable",
    "ConflictRetryExhausted",
    "TransactionTimeout",
    "InvalidInput",
    "create_session_factory",
    "init_db",
    "session_scope",
    "generate_sample_data",
    "add_carrier",
    "add_flight",
    "add_user",
    "create_app",
    "search",
    "reserve",
    "cancel",
    "log_in",
    "get_reservations",
]
