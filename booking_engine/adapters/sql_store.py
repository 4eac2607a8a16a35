"""
SQLAlchemy-backed booking store.

Transactions are serializable: SQLite opens every transaction with
``BEGIN IMMEDIATE`` so writers queue on the database lock, other backends
run at the SERIALIZABLE isolation level. A partial unique index on the
active booking window backs the conflict check at the database level.
"""

import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import (
    Column,
    Date,
    DateTime as SQLDateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    Time,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..domain.exceptions import ConflictError, InternalError, NotFoundError
from ..domain.models import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    DurationType,
)

logger = logging.getLogger(__name__)

Base = declarative_base()
metadata = Base.metadata

_ACTIVE_WINDOW = text("status IN ('pending', 'confirmed')")

_WINDOW_INDEX = "uq_bookings_active_window"

_SQLITE_WINDOW_COLUMNS = (
    "bookings.resource_id, bookings.date, bookings.start_time, bookings.end_time"
)

# PostgreSQL SQLSTATE for a serializable transaction that lost a race.
_SERIALIZATION_FAILURE = "40001"


class BookingRow(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            _WINDOW_INDEX,
            "resource_id",
            "date",
            "start_time",
            "end_time",
            unique=True,
            sqlite_where=_ACTIVE_WINDOW,
            postgresql_where=_ACTIVE_WINDOW,
        ),
        Index("ix_bookings_resource_date", "resource_id", "date"),
    )

    id = Column(String(64), primary_key=True)
    resource_id = Column(String(64), nullable=False)
    user_id = Column(String(128), nullable=False)
    booking_date = Column("date", Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(16), nullable=False, server_default=text("'pending'"))
    duration_hours = Column(Float, nullable=False)
    duration_type = Column(String(8), nullable=False)
    # Decimal kept as text so prices round-trip exactly on every backend
    total_price = Column(String(32), nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    notes = Column(Text)
    created_at = Column(SQLDateTime)
    updated_at = Column(SQLDateTime)


_ATTRIBUTE_FOR_FIELD: Dict[str, str] = {
    "resource_id": "resource_id",
    "user_id": "user_id",
    "date": "booking_date",
    "start_time": "start_time",
    "end_time": "end_time",
    "status": "status",
    "duration_hours": "duration_hours",
    "duration_type": "duration_type",
    "total_price": "total_price",
    "guests": "guests",
    "notes": "notes",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine whose transactions are serializable.

    SQLite needs the pysqlite driver's own transaction handling disabled so
    the ``begin`` hook can issue ``BEGIN IMMEDIATE`` itself.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, isolation_level="SERIALIZABLE", pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class _SqlBookingTable:
    """Booking reads and writes bound to one open session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, booking_id: str) -> Optional[Booking]:
        row = self.session.get(BookingRow, booking_id)
        return _to_booking(row) if row is not None else None

    def find_bookings(
        self,
        resource_id: str,
        day: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        stmt = select(BookingRow).where(
            BookingRow.resource_id == resource_id,
            BookingRow.booking_date == day,
        )
        if statuses is not None:
            stmt = stmt.where(
                BookingRow.status.in_([BookingStatus(s).value for s in statuses])
            )
        stmt = stmt.order_by(BookingRow.start_time, BookingRow.id)
        return [_to_booking(row) for row in self.session.scalars(stmt)]

    def find_active_bookings(self, resource_id: str, day: date) -> List[Booking]:
        return self.find_bookings(resource_id, day, ACTIVE_STATUSES)

    def insert(self, booking: Booking) -> Booking:
        row = BookingRow(id=booking.booking_id)
        for field_name in _ATTRIBUTE_FOR_FIELD:
            _assign(row, field_name, getattr(booking, field_name))
        self.session.add(row)
        self.session.flush()
        return _to_booking(row)

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> Booking:
        row = self.session.get(BookingRow, booking_id)
        if row is None:
            raise NotFoundError(f"Booking '{booking_id}' not found")

        unknown = set(fields) - set(_ATTRIBUTE_FOR_FIELD)
        if unknown:
            raise ValueError(f"Unknown booking field(s): {', '.join(sorted(unknown))}")

        for field_name, value in fields.items():
            _assign(row, field_name, value)
        self.session.flush()
        return _to_booking(row)


class SqlBookingStore:
    """
    Booking store persisted through SQLAlchemy.

    Every call outside ``transaction()`` runs in its own short transaction.
    """

    def __init__(self, engine: Engine, create_schema: bool = True):
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )
        if create_schema:
            metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlBookingStore":
        return cls(build_engine(database_url, echo=echo))

    @contextmanager
    def transaction(self) -> Iterator[_SqlBookingTable]:
        session = self._session_factory()
        try:
            with session.begin():
                yield _SqlBookingTable(session)
        except IntegrityError as exc:
            if not _is_window_violation(exc):
                logger.exception("Booking store integrity failure")
                raise InternalError("Booking store rejected the write") from exc
            logger.warning("Booking write rejected by the database: %s", exc.orig)
            raise ConflictError("The requested window was booked concurrently") from exc
        except OperationalError as exc:
            if getattr(exc.orig, "pgcode", None) == _SERIALIZATION_FAILURE:
                logger.warning("Serializable transaction aborted: %s", exc.orig)
                raise ConflictError("The requested window was booked concurrently") from exc
            logger.exception("Booking store failure")
            raise InternalError("Booking store is unavailable") from exc
        except SQLAlchemyError as exc:
            logger.exception("Booking store failure")
            raise InternalError("Booking store is unavailable") from exc
        finally:
            session.close()

    def get(self, booking_id: str) -> Optional[Booking]:
        with self.transaction() as tx:
            return tx.get(booking_id)

    def find_bookings(
        self,
        resource_id: str,
        day: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        with self.transaction() as tx:
            return tx.find_bookings(resource_id, day, statuses)

    def find_active_bookings(self, resource_id: str, day: date) -> List[Booking]:
        return self.find_bookings(resource_id, day, ACTIVE_STATUSES)

    def insert(self, booking: Booking) -> Booking:
        with self.transaction() as tx:
            return tx.insert(booking)

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> Booking:
        with self.transaction() as tx:
            return tx.update(booking_id, fields)

    def dispose(self) -> None:
        self.engine.dispose()


def _is_window_violation(exc: IntegrityError) -> bool:
    """True when the active-window unique index was violated."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint == _WINDOW_INDEX
    # SQLite names the columns, not the index
    return _SQLITE_WINDOW_COLUMNS in str(exc.orig)


def _assign(row: BookingRow, field_name: str, value: Any) -> None:
    if field_name in ("status", "duration_type"):
        value = value.value if hasattr(value, "value") else value
    elif field_name == "total_price":
        value = str(Decimal(value))
    elif field_name in ("created_at", "updated_at"):
        value = _to_naive_utc(value)
    setattr(row, _ATTRIBUTE_FOR_FIELD[field_name], value)


def _to_booking(row: BookingRow) -> Booking:
    return Booking(
        booking_id=row.id,
        resource_id=row.resource_id,
        user_id=row.user_id,
        date=row.booking_date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=BookingStatus(row.status),
        duration_hours=row.duration_hours,
        duration_type=DurationType(row.duration_type),
        total_price=Decimal(row.total_price),
        guests=row.guests,
        notes=row.notes,
        created_at=_from_naive_utc(row.created_at),
        updated_at=_from_naive_utc(row.updated_at),
    )


def _to_naive_utc(value: Optional[DateTime]):
    if value is None:
        return None
    return pendulum.instance(value).in_timezone("UTC").naive()


def _from_naive_utc(value) -> Optional[DateTime]:
    if value is None:
        return None
    return pendulum.instance(value, tz="UTC")
