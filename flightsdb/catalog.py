"""Read-only queries against the flight catalog."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, aliased

from .config import MAX_SEARCH_RESULTS
from .errors import InvalidInput
from .models import Carrier, Flight


def as_date(value: date) -> date:
    """Normalise ``value`` to a calendar date."""

    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise InvalidInput(f"not a date: {value!r}")
    return value


@dataclass(frozen=True)
class FlightInfo:
    """Detached snapshot of a flight row together with its carrier name."""

    id: int
    carrier: str
    flight_num: str
    origin_city: str
    dest_city: str
    date: date
    duration: int

    @classmethod
    def from_row(cls, flight: Flight, carrier_name: Optional[str] = None) -> "FlightInfo":
        return cls(
            id=flight.id,
            carrier=carrier_name if carrier_name is not None else flight.carrier.name,
            flight_num=flight.flight_num,
            origin_city=flight.origin_city,
            dest_city=flight.dest_city,
            date=flight.date,
            duration=int(flight.actual_time or 0),
        )

    def as_row(self) -> List[object]:
        return [
            self.id,
            self.carrier,
            self.flight_num,
            self.origin_city,
            self.dest_city,
            self.date.isoformat(),
            self.duration,
        ]


def _on_day(flight, day: date):
    return (
        flight.year == day.year,
        flight.month == day.month,
        flight.day_of_month == day.day,
        flight.actual_time.is_not(None),
    )


def find_direct(
    session: Session,
    day: date,
    origin_city: str,
    dest_city: str,
    *,
    limit: int = MAX_SEARCH_RESULTS,
) -> List[FlightInfo]:
    """Operated nonstop flights for the route, fastest first."""

    stmt: Select[tuple[Flight, str]] = (
        select(Flight, Carrier.name)
        .join(Carrier, Flight.carrier_id == Carrier.id)
        .where(
            *_on_day(Flight, day),
            Flight.origin_city == origin_city,
            Flight.dest_city == dest_city,
        )
        .order_by(Flight.actual_time.asc(), Flight.id.asc())
        .limit(limit)
    )
    return [FlightInfo.from_row(flight, name) for flight, name in session.execute(stmt)]


def find_connections(
    session: Session,
    day: date,
    origin_city: str,
    dest_city: str,
    *,
    limit: int = MAX_SEARCH_RESULTS,
) -> List[Tuple[FlightInfo, FlightInfo]]:
    """Operated same-day pairs meeting in an intermediate city, by total time."""

    first = aliased(Flight, name="first_leg")
    second = aliased(Flight, name="second_leg")
    first_carrier = aliased(Carrier, name="first_carrier")
    second_carrier = aliased(Carrier, name="second_carrier")
    stmt = (
        select(first, first_carrier.name, second, second_carrier.name)
        .select_from(first)
        .join(first_carrier, first.carrier_id == first_carrier.id)
        .join(second, first.dest_city == second.origin_city)
        .join(second_carrier, second.carrier_id == second_carrier.id)
        .where(
            *_on_day(first, day),
            *_on_day(second, day),
            first.origin_city == origin_city,
            second.dest_city == dest_city,
        )
        .order_by(
            (first.actual_time + second.actual_time).asc(),
            first.id.asc(),
            second.id.asc(),
        )
        .limit(limit)
    )
    return [
        (FlightInfo.from_row(leg1, name1), FlightInfo.from_row(leg2, name2))
        for leg1, name1, leg2, name2 in session.execute(stmt)
    ]


def get_flights(session: Session, flight_ids: Iterable[int]) -> Dict[int, Flight]:
    ids = list(flight_ids)
    if not ids:
        return {}
    return {flight.id: flight for flight in session.scalars(select(Flight).where(Flight.id.in_(ids)))}


__all__ = ["FlightInfo", "as_date", "find_direct", "find_connections", "get_flights"]
