"""Itinerary search over the flight catalog."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from . import catalog
from .catalog import FlightInfo, as_date
from .config import Settings
from .database import read_only
from .errors import CatalogUnavailable, InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Itinerary:
    """One or two flights forming a same-day trip."""

    flights: Tuple[FlightInfo, ...]

    def __post_init__(self) -> None:
        if not 1 <= len(self.flights) <= 2:
            raise InvalidInput("an itinerary has one or two flights")
        if len(self.flights) == 2:
            first, second = self.flights
            if first.dest_city != second.origin_city:
                raise InvalidInput("connecting flights must meet in the same city")
            if first.date != second.date:
                raise InvalidInput("connecting flights must share a date")

    @property
    def total_duration(self) -> int:
        return sum(flight.duration for flight in self.flights)

    @property
    def is_direct(self) -> bool:
        return len(self.flights) == 1

    @property
    def date(self) -> date:
        return self.flights[0].date

    @property
    def origin_city(self) -> str:
        return self.flights[0].origin_city

    @property
    def dest_city(self) -> str:
        return self.flights[-1].dest_city

    @property
    def flight_ids(self) -> List[int]:
        return [flight.id for flight in self.flights]


def _clean_city(value: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidInput(f"{label} city is required")
    return cleaned


def search(
    session_factory: sessionmaker[Session],
    day: date,
    origin_city: str,
    dest_city: str,
    *,
    settings: Optional[Settings] = None,
) -> List[Itinerary]:
    """Return direct itineraries, then one-connection ones, each fastest first."""

    settings = settings or Settings.from_env()
    day = as_date(day)
    origin = _clean_city(origin_city, "origin")
    destination = _clean_city(dest_city, "destination")
    if origin == destination:
        raise InvalidInput("origin and destination must differ")

    def _query(session: Session) -> Tuple[List[FlightInfo], List[Tuple[FlightInfo, FlightInfo]]]:
        limit = settings.max_search_results
        direct = catalog.find_direct(session, day, origin, destination, limit=limit)
        connections = catalog.find_connections(session, day, origin, destination, limit=limit)
        return direct, connections

    direct, connections = read_only(
        session_factory, _query, error=CatalogUnavailable, operation="flight search"
    )
    itineraries = [Itinerary((flight,)) for flight in direct]
    itineraries.extend(Itinerary(pair) for pair in connections)
    logger.info(
        "search %s %s->%s: %d direct, %d connecting",
        day.isoformat(),
        origin,
        destination,
        len(direct),
        len(connections),
    )
    return itineraries


__all__ = ["Itinerary", "search"]
