"""
Monitoring configuration tables - what we watch and who we tell.

Small tables, rewritten wholesale whenever they change. Insertion order
is preserved through the surrogate ``position`` column.
"""

from sqlalchemy import String, Integer, Float
from sqlalchemy.orm import Mapped, mapped_column

from delaywatch.models.base import Base


class MonitoredAirport(Base):
    """An airport included in every poll cycle."""

    __tablename__ = 'monitored_airports'

    code: Mapped[str] = mapped_column(
        String(3),
        primary_key=True,
        comment='IATA airport code'
    )

    name: Mapped[str] = mapped_column(
        String(200),
        default='',
        comment='Display name'
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment='Display order (insertion order)'
    )

    def __repr__(self) -> str:
        return f'<MonitoredAirport {self.code}>'


class Recipient(Base):
    """A registered phone number that receives delay alerts."""

    __tablename__ = 'recipients'

    number: Mapped[str] = mapped_column(
        String(20),
        primary_key=True,
        comment='Normalized E.164 number'
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f'<Recipient {self.number}>'


class TrackedFlight(Base):
    """
    Last-observed state of a flight at one airport.

    Replaced wholesale for an airport on every poll of that airport, so
    flights missing from the latest snapshot disappear from here too.
    """

    __tablename__ = 'tracked_flights'

    airport_code: Mapped[str] = mapped_column(
        String(3),
        primary_key=True,
    )

    flight_number: Mapped[str] = mapped_column(
        String(10),
        primary_key=True,
        comment='IATA flight number (dedup key)'
    )

    delay_minutes: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )

    status: Mapped[str] = mapped_column(
        String(12),
        default='unknown',
    )

    last_checked: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Unix timestamp of the poll that observed it'
    )

    def __repr__(self) -> str:
        return f'<TrackedFlight {self.airport_code}/{self.flight_number} +{self.delay_minutes}m>'
