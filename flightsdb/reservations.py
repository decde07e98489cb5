"""Reservation store queries.

Every function works inside the caller's session so counts and writes share
one transaction.
"""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import delete as sql_delete
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Flight, Reservation


def count_for_flight(session: Session, flight_id: int) -> int:
    return session.scalar(
        select(func.count(Reservation.id)).where(Reservation.flight_id == flight_id)
    ) or 0


def count_for_user_on_date(session: Session, user_id: int, day: date) -> int:
    stmt = (
        select(func.count(Reservation.id))
        .join(Flight, Reservation.flight_id == Flight.id)
        .where(
            Reservation.user_id == user_id,
            Flight.year == day.year,
            Flight.month == day.month,
            Flight.day_of_month == day.day,
        )
    )
    return session.scalar(stmt) or 0


def count_for_user(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count(Reservation.id)).where(Reservation.user_id == user_id)
    ) or 0


def lock_flight(session: Session, flight_id: int) -> Optional[Flight]:
    """Load ``flight_id`` holding a row lock until the transaction ends."""

    stmt = select(Flight).where(Flight.id == flight_id).with_for_update()
    return session.scalars(stmt).first()


def insert(session: Session, user_id: int, flight_id: int) -> Reservation:
    reservation = Reservation(user_id=user_id, flight_id=flight_id)
    session.add(reservation)
    session.flush()
    return reservation


def delete(session: Session, user_id: int, flight_id: int) -> bool:
    """Remove the reservation if present; returns whether a row was deleted."""

    result = session.execute(
        sql_delete(Reservation).where(
            Reservation.user_id == user_id,
            Reservation.flight_id == flight_id,
        )
    )
    return bool(result.rowcount)


def flights_for_user(session: Session, user_id: int) -> List[Flight]:
    stmt = (
        select(Flight)
        .join(Reservation, Reservation.flight_id == Flight.id)
        .where(Reservation.user_id == user_id)
        .order_by(Flight.year, Flight.month, Flight.day_of_month, Flight.id)
    )
    return list(session.scalars(stmt))


__all__ = [
    "count_for_flight",
    "count_for_user_on_date",
    "count_for_user",
    "lock_flight",
    "insert",
    "delete",
    "flights_for_user",
]
