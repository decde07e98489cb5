"""FastAPI application exposing itinerary search and reservations."""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from .catalog import FlightInfo
from .config import Settings
from .database import init_db_from_settings
from .errors import ConflictRetryExhausted, InvalidInput, StoreUnavailable
from .search import Itinerary, search
from .services import cancel, get_reservations, log_in, reserve


class LoginRequest(BaseModel):
    handle: str
    password: str


class ReservationRequest(BaseModel):
    date: dt.date
    flight_ids: List[int] = Field(min_length=1)


class CancellationRequest(BaseModel):
    flight_ids: List[int] = Field(min_length=1)


def _flight_payload(flight: FlightInfo) -> Dict[str, object]:
    payload = asdict(flight)
    payload["date"] = flight.date.isoformat()
    return payload


def _itinerary_payload(itinerary: Itinerary) -> Dict[str, object]:
    return {
        "direct": itinerary.is_direct,
        "total_duration": itinerary.total_duration,
        "flights": [_flight_payload(flight) for flight in itinerary.flights],
    }


def create_app(
    session_factory: Optional[sessionmaker[Session]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Return an application bound to ``session_factory`` (or the configured database)."""

    settings = settings or Settings.from_env()
    if session_factory is None:
        session_factory = init_db_from_settings(settings)

    app = FastAPI(title="FlightsDB", description="Flight itinerary search and reservations")

    @app.exception_handler(InvalidInput)
    async def _invalid_input(request: Request, exc: InvalidInput) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ConflictRetryExhausted)
    async def _busy(request: Request, exc: ConflictRetryExhausted) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)}, headers={"Retry-After": "1"})

    @app.exception_handler(StoreUnavailable)
    async def _unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/itineraries")
    def itineraries(
        day: dt.date = Query(..., alias="date", description="Travel date (YYYY-MM-DD)"),
        origin: str = Query(..., description="Origin city"),
        destination: str = Query(..., description="Destination city"),
    ) -> dict:
        found = search(session_factory, day, origin, destination, settings=settings)
        return {"itineraries": [_itinerary_payload(itinerary) for itinerary in found]}

    @app.post("/login")
    def login(body: LoginRequest) -> dict:
        user = log_in(session_factory, body.handle, body.password)
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        return asdict(user)

    @app.get("/users/{user_id}/reservations")
    def reservations(user_id: int) -> dict:
        flights = get_reservations(session_factory, user_id)
        return {"flights": [_flight_payload(flight) for flight in flights]}

    @app.post("/users/{user_id}/reservations")
    def create_reservation(user_id: int, body: ReservationRequest) -> dict:
        outcome = reserve(session_factory, user_id, body.date, body.flight_ids, settings=settings)
        return {"outcome": outcome.value}

    @app.post("/users/{user_id}/cancellations")
    def cancellations(user_id: int, body: CancellationRequest) -> dict:
        result = cancel(session_factory, user_id, body.flight_ids, settings=settings)
        return asdict(result)

    return app


__all__ = ["create_app"]
