from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from flightsdb.config import Settings
from flightsdb.database import create_session_factory
from flightsdb.models import Base
from flightsdb.services import add_carrier, add_flight, add_user

DAY = date(2024, 5, 1)
NEXT_DAY = date(2024, 5, 2)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+pysqlite:///unused.db",
        max_retries=5,
        retry_backoff=0.0,
        transaction_timeout=10.0,
        lock_timeout=10.0,
    )


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+pysqlite:///{tmp_path / 'flights.db'}"


@pytest.fixture
def session_factory(db_url):
    engine, factory = create_session_factory(db_url, lock_timeout=10.0)
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def memory_session_factory():
    engine, factory = create_session_factory("sqlite+pysqlite:///:memory:", lock_timeout=10.0)
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


def seed_booking_data(session_factory):
    """Two carriers, ten users and a small network around Boston on DAY."""

    with session_factory() as session:
        add_carrier(session, code="AS", name="Alaska Airlines Inc.")
        add_carrier(session, code="UA", name="United Air Lines Inc.")
        users = [
            add_user(session, handle=f"user{index}", password="secret", name=f"Traveler {index}")
            for index in range(10)
        ]
        flights = SimpleNamespace(
            boston_chicago=add_flight(
                session, carrier_id="UA", flight_num="100", origin_city="Boston",
                dest_city="Chicago", day=DAY, actual_time=150,
            ),
            chicago_seattle=add_flight(
                session, carrier_id="AS", flight_num="200", origin_city="Chicago",
                dest_city="Seattle", day=DAY, actual_time=240,
            ),
            boston_denver=add_flight(
                session, carrier_id="UA", flight_num="300", origin_city="Boston",
                dest_city="Denver", day=DAY, actual_time=210,
            ),
            boston_chicago_tomorrow=add_flight(
                session, carrier_id="UA", flight_num="100", origin_city="Boston",
                dest_city="Chicago", day=NEXT_DAY, actual_time=155,
            ),
            never_flew=add_flight(
                session, carrier_id="AS", flight_num="999", origin_city="Boston",
                dest_city="Seattle", day=DAY, actual_time=None,
            ),
        )
        session.commit()
    return SimpleNamespace(
        users=[user.id for user in users],
        flights=SimpleNamespace(**{name: flight.id for name, flight in vars(flights).items()}),
    )


@pytest.fixture
def booking_data(session_factory):
    return seed_booking_data(session_factory)
