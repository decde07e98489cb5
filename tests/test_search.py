from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from flightsdb import catalog
from flightsdb.errors import CatalogUnavailable, InvalidInput, StoreUnavailable
from flightsdb.search import Itinerary, search
from flightsdb.services import add_carrier, add_flight

from conftest import DAY, NEXT_DAY


def _flight(session, origin, destination, minutes, *, day=DAY, number="1"):
    return add_flight(
        session,
        carrier_id="DL",
        flight_num=number,
        origin_city=origin,
        dest_city=destination,
        day=day,
        actual_time=minutes,
    ).id


@pytest.fixture
def network(session_factory):
    with session_factory() as session:
        add_carrier(session, code="DL", name="Delta Air Lines Inc.")
        ids = {
            "direct_slow": _flight(session, "Boston", "Seattle", 390),
            "direct_fast": _flight(session, "Boston", "Seattle", 330),
            "direct_tie": _flight(session, "Boston", "Seattle", 390),
            "direct_unflown": _flight(session, "Boston", "Seattle", None),
            "direct_tomorrow": _flight(session, "Boston", "Seattle", 300, day=NEXT_DAY),
            "bos_chi": _flight(session, "Boston", "Chicago", 150),
            "chi_sea": _flight(session, "Chicago", "Seattle", 260),
            "bos_den": _flight(session, "Boston", "Denver", 250),
            "den_sea": _flight(session, "Denver", "Seattle", 150),
            "chi_sea_tomorrow": _flight(session, "Chicago", "Seattle", 100, day=NEXT_DAY),
            "bos_chi_unflown": _flight(session, "Boston", "Chicago", None),
        }
        session.commit()
    return ids


def test_direct_results_sorted_by_duration(session_factory, network, settings):
    itineraries = search(session_factory, DAY, "Boston", "Seattle", settings=settings)
    direct = [itinerary for itinerary in itineraries if itinerary.is_direct]

    assert [itinerary.flights[0].id for itinerary in direct] == [
        network["direct_fast"],
        network["direct_slow"],
        network["direct_tie"],
    ]
    assert [itinerary.total_duration for itinerary in direct] == [330, 390, 390]


def test_connections_follow_direct_results_sorted_by_total_time(session_factory, network, settings):
    itineraries = search(session_factory, DAY, "Boston", "Seattle", settings=settings)

    assert [itinerary.is_direct for itinerary in itineraries] == [True, True, True, False, False]
    connecting = itineraries[3:]
    assert [itinerary.flight_ids for itinerary in connecting] == [
        [network["bos_den"], network["den_sea"]],
        [network["bos_chi"], network["chi_sea"]],
    ]
    assert [itinerary.total_duration for itinerary in connecting] == [400, 410]
    for itinerary in connecting:
        first, second = itinerary.flights
        assert first.dest_city == second.origin_city
        assert first.date == second.date == DAY


def test_single_connection_without_direct_flights(session_factory, settings):
    with session_factory() as session:
        add_carrier(session, code="DL", name="Delta Air Lines Inc.")
        first = _flight(session, "Boston", "Chicago", 140)
        second = _flight(session, "Chicago", "Seattle", 250)
        _flight(session, "Chicago", "Seattle", 90, day=NEXT_DAY)
        session.commit()

    itineraries = search(session_factory, datetime(2024, 5, 1, 8, 30), "Boston", "Seattle", settings=settings)

    assert len(itineraries) == 1
    assert itineraries[0].flight_ids == [first, second]
    assert itineraries[0].flights[0].carrier == "Delta Air Lines Inc."
    assert itineraries[0].origin_city == "Boston"
    assert itineraries[0].dest_city == "Seattle"


def test_no_match_returns_empty_list(session_factory, network, settings):
    assert search(session_factory, DAY, "Seattle", "Boston", settings=settings) == []


def test_result_count_is_capped(session_factory, network, settings):
    itineraries = search(
        session_factory, DAY, "Boston", "Seattle", settings=replace(settings, max_search_results=1)
    )

    assert [itinerary.flight_ids for itinerary in itineraries] == [
        [network["direct_fast"]],
        [network["bos_den"], network["den_sea"]],
    ]


@pytest.mark.parametrize(
    "origin, destination",
    [("", "Seattle"), ("Boston", "   "), ("Boston", "Boston")],
)
def test_bad_cities_are_rejected(session_factory, settings, origin, destination):
    with pytest.raises(InvalidInput):
        search(session_factory, DAY, origin, destination, settings=settings)


def test_catalog_failure_is_translated(session_factory, network, settings, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, sqlite3.OperationalError("unable to open database file"))

    monkeypatch.setattr(catalog, "find_connections", broken)

    with pytest.raises(CatalogUnavailable) as excinfo:
        search(session_factory, DAY, "Boston", "Seattle", settings=settings)
    assert isinstance(excinfo.value, StoreUnavailable)


def test_itinerary_requires_connecting_legs(session_factory, network, settings):
    with session_factory() as session:
        found = catalog.get_flights(session, [network["bos_chi"], network["den_sea"]])
        bos_chi = catalog.FlightInfo.from_row(found[network["bos_chi"]])
        den_sea = catalog.FlightInfo.from_row(found[network["den_sea"]])

    with pytest.raises(InvalidInput):
        Itinerary((bos_chi, den_sea))
    with pytest.raises(InvalidInput):
        Itinerary(())
