"""
Flight history tables - the analytical backbone of the system.

Every poll cycle appends one row per observed flight. Rows are never
updated, only inserted and eventually evicted oldest-first once the
retention bound is exceeded. Surrogate autoincrement ids preserve append
order, which is also chronological order since cycles never overlap.
"""

from typing import Optional

from sqlalchemy import String, Float, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from delaywatch.models.base import Base


class FlightHistory(Base):
    """One observation of one flight during one poll cycle."""

    __tablename__ = 'flight_records'

    # Using Integer for SQLite compatibility (autoincrement only works with INTEGER)
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    timestamp: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        index=True,
        comment='Unix timestamp of the poll cycle'
    )

    airport_code: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    flight_number: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    airline: Mapped[str] = mapped_column(
        String(100),
        default='Unknown',
    )

    departure_iata: Mapped[Optional[str]] = mapped_column(
        String(3),
        nullable=True,
    )

    arrival_iata: Mapped[Optional[str]] = mapped_column(
        String(3),
        nullable=True,
    )

    scheduled_time: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        comment='Scheduled departure as reported by the provider'
    )

    delay_minutes: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )

    status: Mapped[str] = mapped_column(
        String(12),
        default='unknown',
    )

    __table_args__ = (
        Index('ix_flight_records_airport_time', 'airport_code', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f'<FlightHistory {self.flight_number} @ {self.timestamp}>'


class DelayTrend(Base):
    """Average delay of delayed flights, one row per qualifying poll."""

    __tablename__ = 'delay_trends'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    timestamp: Mapped[float] = mapped_column(Float, nullable=False)

    average_delay: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Mean delay in minutes, one decimal'
    )


class AirportPollLog(Base):
    """How many flights each poll of an airport returned."""

    __tablename__ = 'airport_poll_log'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    airport_code: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        index=True,
    )

    timestamp: Mapped[float] = mapped_column(Float, nullable=False)

    flight_count: Mapped[int] = mapped_column(Integer, default=0)
