"""Database helpers for the flight reservation system."""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DEFAULT_DATABASE_URL, Settings
from .errors import ConflictRetryExhausted, StoreUnavailable, TransactionTimeout
from .models import RESERVATION_PAIR_CONSTRAINT, Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE codes for serialization failure and deadlock.
_CONFLICT_SQLSTATES = ("40001", "40P01")
_CONFLICT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "could not serialize access",
    "deadlock detected",
)
# SQLite names the columns, not the constraint.
_SQLITE_RESERVATION_PAIR = "UNIQUE constraint failed: reservations.user_id, reservations.flight_id"


def _install_sqlite_begin(engine: Engine, lock_timeout: float) -> None:
    # pysqlite emits its own BEGIN lazily; take over so a transaction can ask
    # for BEGIN IMMEDIATE and hold the write lock from its first statement.
    # The busy wait is reset on every BEGIN so a shortened wait never leaks
    # into the next user of a pooled connection.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        options = conn.get_execution_options()
        wait = min(options.get("sqlite_busy_timeout", lock_timeout), lock_timeout)
        conn.exec_driver_sql(f"PRAGMA busy_timeout = {max(int(wait * 1000), 0)}")
        mode = options.get("sqlite_begin")
        conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


def create_session_factory(
    db_url: str = DEFAULT_DATABASE_URL,
    *,
    echo: bool = False,
    connect_args: Dict[str, object] | None = None,
    lock_timeout: float = 5.0,
) -> Tuple[Engine, sessionmaker[Session]]:
    """Return an engine/session factory pair configured for SQLite by default."""

    if db_url.startswith("sqlite"):
        final_connect_args: Dict[str, object] = {"check_same_thread": False, "timeout": lock_timeout}
        if connect_args:
            final_connect_args.update(connect_args)
    else:
        final_connect_args = connect_args or {}

    if db_url.endswith(":memory:"):
        engine = create_engine(
            db_url,
            echo=echo,
            connect_args=final_connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            db_url,
            echo=echo,
            connect_args=final_connect_args,
        )
    if engine.dialect.name == "sqlite":
        _install_sqlite_begin(engine, lock_timeout)
    info: Dict[str, object] = {}
    if isinstance(engine.pool, StaticPool):
        # Every session shares one DBAPI connection, so transactions from
        # different threads would interleave on it.
        info["connection_lock"] = threading.Lock()
    session_factory = sessionmaker(bind=engine, expire_on_commit=False, info=info)
    return engine, session_factory


def init_db(db_url: str = DEFAULT_DATABASE_URL, *, echo: bool = False, lock_timeout: float = 5.0) -> sessionmaker[Session]:
    """Create all tables and return a session factory."""

    engine, session_factory = create_session_factory(db_url, echo=echo, lock_timeout=lock_timeout)
    Base.metadata.create_all(engine)
    return session_factory


def init_db_from_settings(settings: Settings) -> sessionmaker[Session]:
    return init_db(settings.database_url, echo=settings.echo_sql, lock_timeout=settings.lock_timeout)


def _serializable_options(session: Session, timeout: Optional[float]) -> Dict[str, object]:
    if session.get_bind().dialect.name == "sqlite":
        options: Dict[str, object] = {"sqlite_begin": "IMMEDIATE"}
        if timeout is not None:
            options["sqlite_busy_timeout"] = timeout
        return options
    return {"isolation_level": "SERIALIZABLE"}


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
    *,
    serializable: bool = False,
    timeout: Optional[float] = None,
) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    With ``serializable`` the transaction is opened with the strongest
    isolation the backend offers before any statement runs. ``timeout`` caps
    how long the scope may wait for a lock before its first statement.
    """

    session = session_factory()
    lock = session.info.get("connection_lock")
    if lock is not None and not lock.acquire(timeout=-1 if timeout is None else max(timeout, 0)):
        session.close()
        raise TransactionTimeout(f"connection still busy after {timeout:g}s")
    try:
        if serializable:
            session.connection(execution_options=_serializable_options(session, timeout))
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        if lock is not None:
            lock.release()


def _violates_reservation_pair(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    diag = getattr(exc.orig, "diag", None)
    if getattr(diag, "constraint_name", None) == RESERVATION_PAIR_CONSTRAINT:
        return True
    return RESERVATION_PAIR_CONSTRAINT in message or _SQLITE_RESERVATION_PAIR in message


def is_serialization_conflict(exc: DBAPIError) -> bool:
    """Return True when ``exc`` means "another transaction won, try again"."""

    if isinstance(exc, IntegrityError):
        # Concurrent inserts of the same (user, flight) pair surface as a
        # unique violation instead of a serialization failure. Any other
        # constraint failure is a real error.
        return _violates_reservation_pair(exc)
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _CONFLICT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in _CONFLICT_MESSAGES)


def run_in_transaction(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    *,
    settings: Settings,
    operation: str = "transaction",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``work`` inside a serializable transaction, retrying on conflicts.

    Store errors never escape: conflicts become :class:`ConflictRetryExhausted`
    (or :class:`TransactionTimeout` once the time budget is spent) and every
    other database failure becomes :class:`StoreUnavailable`. Each attempt
    waits for locks no longer than what is left of ``transaction_timeout``.
    """

    deadline = time.monotonic() + settings.transaction_timeout
    attempt = 0
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransactionTimeout(f"{operation} did not finish within {settings.transaction_timeout:g}s")
        attempt += 1
        try:
            with session_scope(session_factory, serializable=True, timeout=remaining) as session:
                return work(session)
        except DBAPIError as exc:
            if not is_serialization_conflict(exc):
                raise StoreUnavailable(f"{operation} failed: {exc.orig}") from exc
            if attempt >= settings.max_retries:
                raise ConflictRetryExhausted(
                    f"{operation} gave up after {attempt} conflicting attempts"
                ) from exc
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransactionTimeout(
                    f"{operation} did not finish within {settings.transaction_timeout:g}s"
                ) from exc
            delay = min(settings.retry_backoff * (2 ** (attempt - 1)), remaining)
            logger.warning("%s conflicted (attempt %d/%d), retrying", operation, attempt, settings.max_retries)
            sleep(delay)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"{operation} failed: {exc}") from exc


def read_only(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    *,
    error: type[StoreUnavailable] = StoreUnavailable,
    operation: str = "read",
) -> T:
    """Run a read in its own session, translating store failures to ``error``."""

    try:
        with session_scope(session_factory) as session:
            return work(session)
    except SQLAlchemyError as exc:
        raise error(f"{operation} failed: {exc}") from exc


__all__ = [
    "create_session_factory",
    "init_db",
    "init_db_from_settings",
    "session_scope",
    "is_serialization_conflict",
    "run_in_transaction",
    "read_only",
]
