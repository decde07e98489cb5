"""Environment driven settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import InvalidInput

_PREFIX = "FLIGHTSDB_"

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///flights.db"

# Maximum number of reservations allowed on one flight.
MAX_FLIGHT_BOOKINGS = 3
MAX_SEARCH_RESULTS = 99


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings.

    ``transaction_timeout`` bounds a whole write including its retries, and no
    single lock wait outlasts what is left of it. ``lock_timeout`` is the
    longest any one lock wait may take.
    """

    database_url: str = DEFAULT_DATABASE_URL
    max_flight_bookings: int = MAX_FLIGHT_BOOKINGS
    max_search_results: int = MAX_SEARCH_RESULTS
    max_retries: int = 5
    retry_backoff: float = 0.05
    transaction_timeout: float = 10.0
    lock_timeout: float = 5.0
    echo_sql: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``FLIGHTSDB_*`` variables, falling back to defaults."""

        env = os.environ if environ is None else environ
        defaults = cls()

        def lookup(name: str, cast, default):
            raw = env.get(_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return cast(raw)
            except ValueError as exc:
                raise InvalidInput(f"Invalid value for {_PREFIX}{name}: {raw!r}") from exc

        settings = cls(
            database_url=lookup("DATABASE_URL", str, defaults.database_url),
            max_flight_bookings=lookup("MAX_FLIGHT_BOOKINGS", int, defaults.max_flight_bookings),
            max_search_results=lookup("MAX_SEARCH_RESULTS", int, defaults.max_search_results),
            max_retries=lookup("MAX_RETRIES", int, defaults.max_retries),
            retry_backoff=lookup("RETRY_BACKOFF", float, defaults.retry_backoff),
            transaction_timeout=lookup("TRANSACTION_TIMEOUT", float, defaults.transaction_timeout),
            lock_timeout=lookup("LOCK_TIMEOUT", float, defaults.lock_timeout),
            echo_sql=lookup("ECHO_SQL", _parse_bool, defaults.echo_sql),
            log_level=lookup("LOG_LEVEL", str, defaults.log_level).upper(),
        )
        if settings.max_retries < 1:
            raise InvalidInput(f"{_PREFIX}MAX_RETRIES must be at least 1")
        if settings.max_flight_bookings < 1:
            raise InvalidInput(f"{_PREFIX}MAX_FLIGHT_BOOKINGS must be at least 1")
        return settings


__all__ = ["Settings", "DEFAULT_DATABASE_URL", "MAX_FLIGHT_BOOKINGS", "MAX_SEARCH_RESULTS"]
