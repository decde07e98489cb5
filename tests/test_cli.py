from __future__ import annotations

from flightsdb import cli

from conftest import DAY


def _run(db_url, *args):
    return cli.main(["--database-url", db_url, *args])


def test_search_prints_itineraries(db_url, booking_data, capsys):
    assert _run(db_url, "search", DAY.isoformat(), "Boston", "Seattle") == 0

    output = capsys.readouterr().out
    assert "Chicago" in output
    assert "390" in output


def test_search_without_results(db_url, booking_data, capsys):
    assert _run(db_url, "search", DAY.isoformat(), "Seattle", "Boston") == 0
    assert "No itineraries found." in capsys.readouterr().out


def test_reserve_show_and_cancel(db_url, booking_data, capsys):
    flight_id = str(booking_data.flights.boston_denver)

    assert _run(db_url, "reserve", "user0", "secret", DAY.isoformat(), flight_id) == 0
    assert "Reservation confirmed." in capsys.readouterr().out

    assert _run(db_url, "reservations", "user0", "secret") == 0
    assert "Denver" in capsys.readouterr().out

    assert _run(db_url, "cancel", "user0", "secret", flight_id) == 0
    assert f"Cancelled flights: {flight_id}" in capsys.readouterr().out

    assert _run(db_url, "reservations", "user0", "secret") == 0
    assert "has no reservations" in capsys.readouterr().out


def test_bad_login_exits_with_status_two(db_url, booking_data, capsys):
    assert _run(db_url, "reservations", "user0", "wrong") == 2
    assert "Invalid credentials" in capsys.readouterr().err


def test_seed_reports_counts(tmp_path, capsys):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'seeded.db'}"

    assert _run(db_url, "seed", "--flights", "10", "--users", "5", "--bookings", "5") == 0

    output = capsys.readouterr().out
    assert "flights" in output
    assert "users" in output
