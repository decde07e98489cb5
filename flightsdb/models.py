"""SQLAlchemy models for the flight reservation system."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


RESERVATION_PAIR_CONSTRAINT = "uq_reservation_user_flight"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("handle", name="uq_user_handle"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    handle: Mapped[str] = mapped_column(String(20), nullable=False)
    password: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Carrier(Base):
    __tablename__ = "carriers"

    id: Mapped[str] = mapped_column(String(7), primary_key=True)
    name: Mapped[str] = mapped_column(String(83), nullable=False)

    flights: Mapped[List["Flight"]] = relationship(back_populates="carrier")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_flight_month"),
        CheckConstraint("day_of_month BETWEEN 1 AND 31", name="ck_flight_day"),
        CheckConstraint("actual_time IS NULL OR actual_time >= 0", name="ck_actual_time_non_negative"),
        Index("ix_flights_route_day", "year", "month", "day_of_month", "origin_city", "dest_city"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    carrier_id: Mapped[str] = mapped_column(ForeignKey("carriers.id"), nullable=False)
    flight_num: Mapped[str] = mapped_column(String(10), nullable=False)
    origin_city: Mapped[str] = mapped_column(String(34), nullable=False)
    dest_city: Mapped[str] = mapped_column(String(34), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    # Flight duration in minutes; NULL when the flight never operated.
    actual_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    carrier: Mapped[Carrier] = relationship(back_populates="flights")
    reservations: Mapped[List["Reservation"]] = relationship(back_populates="flight")

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day_of_month)

    @property
    def operated(self) -> bool:
        return self.actual_time is not None


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("user_id", "flight_id", name=RESERVATION_PAIR_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    user: Mapped[User] = relationship(back_populates="reservations")
    flight: Mapped[Flight] = relationship(back_populates="reservations")
