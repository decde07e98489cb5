"""Utilities to populate the database with sample data for tests and demos."""
from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Dict, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .catalog import FlightInfo
from .config import Settings
from .errors import FlightsDBError
from .models import Flight, User
from .services import ReservationOutcome, add_carrier, add_flight, add_user, reserve

CITIES: Sequence[str] = (
    "Boston MA",
    "Chicago IL",
    "Seattle WA",
    "Denver CO",
    "Atlanta GA",
    "New York NY",
    "San Francisco CA",
    "Dallas TX",
)
CARRIERS: Sequence[tuple[str, str]] = (
    ("AA", "American Airlines Inc."),
    ("UA", "United Air Lines Inc."),
    ("DL", "Delta Air Lines Inc."),
    ("AS", "Alaska Airlines Inc."),
)
FIRST_NAMES = ("Ava", "Noah", "Liam", "Mia", "Lucas", "Emma", "Ethan", "Isabella")
LAST_NAMES = ("Johnson", "Williams", "Smith", "Brown", "Garcia", "Lee")


def generate_sample_data(
    session_factory: sessionmaker[Session],
    *,
    flights: int = 60,
    users: int = 20,
    bookings: int = 30,
    start: Optional[date] = None,
    days: int = 3,
    settings: Optional[Settings] = None,
) -> Dict[str, int]:
    """Populate the database with deterministic pseudo-random data.

    Bookings go through :func:`reserve`, so the sample never violates the
    capacity or reservation-day rules; ``bookings`` counts the successful ones.
    """

    rng = random.Random(42)
    start = start or date.today()
    with session_factory() as session:
        for code, name in CARRIERS:
            add_carrier(session, code=code, name=name)
        for index in range(flights):
            origin, destination = rng.sample(CITIES, 2)
            operated = rng.random() > 0.1
            add_flight(
                session,
                carrier_id=rng.choice(CARRIERS)[0],
                flight_num=str(100 + index),
                origin_city=origin,
                dest_city=destination,
                day=start + timedelta(days=rng.randrange(max(days, 1))),
                actual_time=float(rng.randint(60, 360)) if operated else None,
            )
        for index in range(users):
            add_user(
                session,
                handle=f"user{index}",
                password=f"pw{index}",
                name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
            )
        session.commit()

    with session_factory() as session:
        flight_rows = [
            FlightInfo.from_row(flight)
            for flight in session.scalars(select(Flight).where(Flight.actual_time.is_not(None)))
        ]
        user_ids = list(session.scalars(select(User.id)))
    if not flight_rows or not user_ids:
        return {"flights": flights, "users": users, "bookings": 0}

    successful = 0
    for _ in range(bookings):
        flight = rng.choice(flight_rows)
        try:
            outcome = reserve(
                session_factory,
                rng.choice(user_ids),
                flight.date,
                [flight],
                settings=settings,
            )
        except FlightsDBError:
            continue
        if outcome is ReservationOutcome.BOOKED:
            successful += 1
    return {"flights": flights, "users": users, "bookings": successful}
