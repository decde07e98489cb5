"""Business logic for the flight reservation system."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from . import catalog, reservations
from .catalog import FlightInfo, as_date
from .config import Settings
from .database import read_only, run_in_transaction
from .errors import InvalidInput
from .models import Carrier, Flight, User

logger = logging.getLogger(__name__)

MAX_ITINERARY_LEGS = 2


class ReservationOutcome(str, enum.Enum):
    BOOKED = "booked"
    FLIGHT_FULL = "flight_full"
    DAY_FULL = "day_full"


@dataclass(frozen=True)
class UserInfo:
    id: int
    handle: str
    name: str


@dataclass
class CancellationResult:
    removed: List[int] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)


UserRef = Union[User, UserInfo, int]
FlightRef = Union[Flight, FlightInfo, int]


def _user_id(user: UserRef) -> int:
    if isinstance(user, int) and not isinstance(user, bool):
        return user
    user_id = getattr(user, "id", None)
    if not isinstance(user_id, int):
        raise InvalidInput(f"not a user: {user!r}")
    return user_id


def _flight_ids(flights: Sequence[FlightRef]) -> List[int]:
    ids: List[int] = []
    for flight in flights:
        flight_id = flight if isinstance(flight, int) else getattr(flight, "id", None)
        if not isinstance(flight_id, int) or isinstance(flight_id, bool):
            raise InvalidInput(f"not a flight: {flight!r}")
        ids.append(flight_id)
    if not ids:
        raise InvalidInput("at least one flight is required")
    if len(set(ids)) != len(ids):
        raise InvalidInput("the same flight is listed twice")
    return ids


def add_user(session: Session, *, handle: str, password: str, name: str) -> User:
    user = User(handle=handle, password=password, name=name)
    session.add(user)
    session.flush()
    return user


def add_carrier(session: Session, *, code: str, name: str) -> Carrier:
    carrier = Carrier(id=code, name=name)
    session.add(carrier)
    session.flush()
    return carrier


def add_flight(
    session: Session,
    *,
    carrier_id: str,
    flight_num: str,
    origin_city: str,
    dest_city: str,
    day: date,
    actual_time: Optional[float],
) -> Flight:
    """Create a flight entry; ``actual_time`` of None marks a flight that never operated."""

    flight = Flight(
        carrier_id=carrier_id,
        flight_num=flight_num,
        origin_city=origin_city,
        dest_city=dest_city,
        year=day.year,
        month=day.month,
        day_of_month=day.day,
        actual_time=actual_time,
    )
    session.add(flight)
    session.flush()
    return flight


def log_in(session_factory: sessionmaker[Session], handle: str, password: str) -> Optional[UserInfo]:
    """Return the user whose handle and password match, or None."""

    def _lookup(session: Session) -> Optional[UserInfo]:
        user = session.scalars(
            select(User).where(User.handle == handle, User.password == password)
        ).first()
        if user is None:
            return None
        return UserInfo(id=user.id, handle=user.handle, name=user.name)

    user = read_only(session_factory, _lookup, operation="log in")
    if user is None:
        logger.warning("invalid credentials for handle %r", handle)
    return user


def get_reservations(session_factory: sessionmaker[Session], user: UserRef) -> List[FlightInfo]:
    """Flights currently reserved by ``user``, by date."""

    user_id = _user_id(user)

    def _load(session: Session) -> List[FlightInfo]:
        return [FlightInfo.from_row(flight) for flight in reservations.flights_for_user(session, user_id)]

    return read_only(session_factory, _load, operation="list reservations")


def _validate_legs(session: Session, user_id: int, day: date, flight_ids: List[int]) -> None:
    if session.get(User, user_id) is None:
        raise InvalidInput(f"unknown user {user_id}")
    found = catalog.get_flights(session, flight_ids)
    legs: List[Flight] = []
    for flight_id in flight_ids:
        flight = found.get(flight_id)
        if flight is None:
            raise InvalidInput(f"unknown flight {flight_id}")
        if not flight.operated:
            raise InvalidInput(f"flight {flight_id} never operated")
        if flight.date != day:
            raise InvalidInput(f"flight {flight_id} does not fly on {day.isoformat()}")
        legs.append(flight)
    for first, second in zip(legs, legs[1:]):
        if first.dest_city != second.origin_city:
            raise InvalidInput(f"flights {first.id} and {second.id} do not connect")


def _reserve_legs(
    session: Session,
    user_id: int,
    day: date,
    flight_ids: List[int],
    capacity: int,
) -> ReservationOutcome:
    _validate_legs(session, user_id, day, flight_ids)

    # Checked before any flight is touched so a day violation never books a leg.
    if reservations.count_for_user_on_date(session, user_id, day) > 0:
        session.rollback()
        return ReservationOutcome.DAY_FULL
    if reservations.count_for_user(session, user_id) > 0:
        # Holding a reservation-day on another date counts too.
        session.rollback()
        return ReservationOutcome.DAY_FULL

    for flight_id in flight_ids:
        reservations.lock_flight(session, flight_id)
        if reservations.count_for_flight(session, flight_id) >= capacity:
            session.rollback()
            return ReservationOutcome.FLIGHT_FULL
        reservations.insert(session, user_id, flight_id)
    return ReservationOutcome.BOOKED


def reserve(
    session_factory: sessionmaker[Session],
    user: UserRef,
    day: date,
    flights: Sequence[FlightRef],
    *,
    settings: Optional[Settings] = None,
) -> ReservationOutcome:
    """Reserve every flight of an itinerary for ``user`` on ``day``, or none of them.

    Returns :attr:`ReservationOutcome.DAY_FULL` when the user already holds a
    reservation-day and :attr:`ReservationOutcome.FLIGHT_FULL` when any leg is
    at capacity; both leave the store untouched.
    """

    settings = settings or Settings.from_env()
    day = as_date(day)
    user_id = _user_id(user)
    flight_ids = _flight_ids(flights)
    if len(flight_ids) > MAX_ITINERARY_LEGS:
        raise InvalidInput(f"an itinerary has at most {MAX_ITINERARY_LEGS} flights")

    outcome = run_in_transaction(
        session_factory,
        lambda session: _reserve_legs(session, user_id, day, flight_ids, settings.max_flight_bookings),
        settings=settings,
        operation="reservation",
    )
    logger.info(
        "reserve user=%d date=%s flights=%s -> %s",
        user_id,
        day.isoformat(),
        flight_ids,
        outcome.value,
    )
    return outcome


def cancel(
    session_factory: sessionmaker[Session],
    user: UserRef,
    flights: Sequence[FlightRef],
    *,
    settings: Optional[Settings] = None,
) -> CancellationResult:
    """Remove the user's reservations on ``flights`` in one transaction.

    Flights the user holds no reservation on are reported in ``missing``.
    """

    settings = settings or Settings.from_env()
    user_id = _user_id(user)
    flight_ids = _flight_ids(flights)

    def _remove(session: Session) -> CancellationResult:
        result = CancellationResult()
        for flight_id in flight_ids:
            if reservations.delete(session, user_id, flight_id):
                result.removed.append(flight_id)
            else:
                result.missing.append(flight_id)
        return result

    result = run_in_transaction(session_factory, _remove, settings=settings, operation="cancellation")
    logger.info("cancel user=%d removed=%s missing=%s", user_id, result.removed, result.missing)
    return result


__all__ = [
    "MAX_ITINERARY_LEGS",
    "ReservationOutcome",
    "UserInfo",
    "CancellationResult",
    "add_user",
    "add_carrier",
    "add_flight",
    "log_in",
    "get_reservations",
    "reserve",
    "cancel",
]
