"""Command line interface for searching and reserving flights."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date
from typing import Iterable, List, Optional

from tabulate import tabulate

from .catalog import FlightInfo
from .config import Settings
from .database import init_db
from .dataset import generate_sample_data
from .search import Itinerary, search
from .services import ReservationOutcome, UserInfo, cancel, get_reservations, log_in, reserve

_FLIGHT_HEADERS = ["Flight id", "Carrier", "Number", "Origin", "Destination", "Date", "Minutes"]

_OUTCOME_MESSAGES = {
    ReservationOutcome.BOOKED: "Reservation confirmed.",
    ReservationOutcome.FLIGHT_FULL: "Sorry, that flight is full.",
    ReservationOutcome.DAY_FULL: "You already hold a reservation for another trip.",
}


class LoginFailed(Exception):
    pass


def _render_flights(flights: Iterable[FlightInfo]) -> str:
    return tabulate([flight.as_row() for flight in flights], headers=_FLIGHT_HEADERS, tablefmt="github")


def _render_itineraries(itineraries: Iterable[Itinerary]) -> str:
    rows: List[List[object]] = []
    for number, itinerary in enumerate(itineraries, start=1):
        for leg, flight in enumerate(itinerary.flights):
            label = str(number) if leg == 0 else ""
            total = itinerary.total_duration if leg == 0 else ""
            rows.append([label, total] + flight.as_row())
    return tabulate(rows, headers=["#", "Total minutes"] + _FLIGHT_HEADERS, tablefmt="github")


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search and reserve flights.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (default: FLIGHTSDB_DATABASE_URL or a local SQLite file).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log at INFO level regardless of FLIGHTSDB_LOG_LEVEL.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables.")

    seed = commands.add_parser("seed", help="Fill the database with sample data.")
    seed.add_argument("--flights", type=int, default=60)
    seed.add_argument("--users", type=int, default=20)
    seed.add_argument("--bookings", type=int, default=30)

    search_cmd = commands.add_parser("search", help="List itineraries for a day and city pair.")
    search_cmd.add_argument("date", type=_parse_date)
    search_cmd.add_argument("origin")
    search_cmd.add_argument("destination")

    for name, help_text in (
        ("reservations", "Show the flights you have reserved."),
        ("reserve", "Reserve one itinerary (one or two flights)."),
        ("cancel", "Cancel reservations on the given flights."),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("handle")
        command.add_argument("password")
        if name == "reserve":
            command.add_argument("date", type=_parse_date)
            command.add_argument("flight_ids", type=int, nargs="+", metavar="FLIGHT_ID")
        elif name == "cancel":
            command.add_argument("flight_ids", type=int, nargs="+", metavar="FLIGHT_ID")

    return parser.parse_args(list(argv))


def _authenticate(session_factory, args: argparse.Namespace) -> UserInfo:
    user = log_in(session_factory, args.handle, args.password)
    if user is None:
        raise LoginFailed(f"Invalid credentials for '{args.handle}'.")
    return user


def _run(args: argparse.Namespace, settings: Settings) -> str:
    session_factory = init_db(settings.database_url, echo=settings.echo_sql, lock_timeout=settings.lock_timeout)

    if args.command == "init-db":
        return f"Initialised {settings.database_url}"
    if args.command == "seed":
        summary = generate_sample_data(
            session_factory,
            flights=args.flights,
            users=args.users,
            bookings=args.bookings,
            settings=settings,
        )
        return tabulate(sorted(summary.items()), headers=["Table", "Rows"], tablefmt="github")
    if args.command == "search":
        itineraries = search(session_factory, args.date, args.origin, args.destination, settings=settings)
        if not itineraries:
            return "No itineraries found."
        return _render_itineraries(itineraries)

    user = _authenticate(session_factory, args)
    if args.command == "reservations":
        flights = get_reservations(session_factory, user)
        if not flights:
            return f"{user.name} has no reservations."
        return _render_flights(flights)
    if args.command == "reserve":
        outcome = reserve(session_factory, user, args.date, args.flight_ids, settings=settings)
        return _OUTCOME_MESSAGES[outcome]
    if args.command == "cancel":
        result = cancel(session_factory, user, args.flight_ids, settings=settings)
        lines = [f"Cancelled flights: {', '.join(map(str, result.removed)) or 'none'}"]
        if result.missing:
            lines.append(f"No reservation held on: {', '.join(map(str, result.missing))}")
        return "\n".join(lines)
    raise ValueError(f"Unsupported command '{args.command}'.")


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        settings = Settings.from_env()
        if args.database_url:
            settings = replace(settings, database_url=args.database_url)
        logging.basicConfig(
            level=logging.INFO if args.verbose else settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        output = _run(args, settings)
    except LoginFailed as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - CLI entry point
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
