"""
Flight record store - authoritative in-memory state with durable flushes.

Holds everything the service remembers between poll cycles:
- Monitored airports and notification recipients (small, ordered lists)
- Tracked flight state per airport (last-observed delay/status)
- Bounded flight-record history (append-only, FIFO eviction)
- Bounded delay-trend series and per-airport poll log

Design rationale:
Memory is the source of truth. Every mutation updates memory first and then
flushes only what changed to the database inside a single transaction:
dirty small tables are rewritten, queued rows are inserted, and rows past
the retention bounds are deleted oldest-first. A transaction either commits
whole or not at all, so a crash mid-write never leaves a torn state behind.
If a flush fails the queued rows stay queued and go out with the next
successful flush.

Readers (analytics requests) may run concurrently with a poll cycle. All
access goes through an RLock and readers get copies, so a reader sees either
the state before an append or after it, never half of one.
"""

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Dict, List, Deque, Iterable, Sequence, Set, Tuple

from sqlalchemy import select, delete, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from delaywatch.config import config
from delaywatch.errors import PersistenceError
from delaywatch.models import (
    SessionLocal,
    get_session,
    MonitoredAirport,
    Recipient,
    TrackedFlight,
    FlightHistory,
    DelayTrend,
    AirportPollLog,
)

if TYPE_CHECKING:
    from delaywatch.flights import FlightObservation

logger = logging.getLogger(__name__)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a dashboard would: 2.25 -> 2.3, 0.5 -> 1."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _to_epoch(dt: datetime) -> float:
    return dt.timestamp()


def _from_epoch(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


@dataclass(frozen=True)
class Airport:
    """A monitored airport. Code is the unique key."""
    code: str
    name: str

    def to_dict(self) -> dict:
        return {'code': self.code, 'name': self.name}


@dataclass(frozen=True)
class TrackedState:
    """Last-observed state of one flight."""
    delay_minutes: int
    status: str
    last_checked: datetime

    def to_dict(self) -> dict:
        return {
            'delay': self.delay_minutes,
            'status': self.status,
            'lastChecked': self.last_checked.isoformat(),
        }


@dataclass(frozen=True)
class FlightRecord:
    """
    One flight observed during one poll cycle.

    Immutable once written. The denormalized departure/arrival codes let
    analytics run without touching the raw snapshot.
    """
    timestamp: datetime
    airport_code: str
    flight_number: str
    airline: str
    departure_iata: Optional[str]
    arrival_iata: Optional[str]
    scheduled_time: Optional[str]
    delay_minutes: int
    status: str

    @classmethod
    def from_observation(
        cls,
        airport_code: str,
        flight: 'FlightObservation',
        timestamp: datetime,
    ) -> 'FlightRecord':
        return cls(
            timestamp=timestamp,
            airport_code=airport_code,
            flight_number=flight.flight_number,
            airline=flight.airline,
            departure_iata=flight.departure.iata,
            arrival_iata=flight.arrival.iata,
            scheduled_time=flight.departure.scheduled_time,
            delay_minutes=flight.delay_minutes,
            status=flight.status.value,
        )

    def to_row(self) -> dict:
        return {
            'timestamp': _to_epoch(self.timestamp),
            'airport_code': self.airport_code,
            'flight_number': self.flight_number,
            'airline': self.airline,
            'departure_iata': self.departure_iata,
            'arrival_iata': self.arrival_iata,
            'scheduled_time': self.scheduled_time,
            'delay_minutes': self.delay_minutes,
            'status': self.status,
        }

    @classmethod
    def from_row(cls, row: FlightHistory) -> 'FlightRecord':
        return cls(
            timestamp=_from_epoch(row.timestamp),
            airport_code=row.airport_code,
            flight_number=row.flight_number,
            airline=row.airline,
            departure_iata=row.departure_iata,
            arrival_iata=row.arrival_iata,
            scheduled_time=row.scheduled_time,
            delay_minutes=row.delay_minutes,
            status=row.status,
        )


@dataclass(frozen=True)
class DelayTrendPoint:
    """Average delay among delayed flights in one poll."""
    timestamp: datetime
    average_delay: float

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'averageDelay': self.average_delay,
        }


@dataclass(frozen=True)
class PollLogEntry:
    timestamp: datetime
    flight_count: int

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'flightCount': self.flight_count,
        }


class FlightRecordStore:
    """
    Thread-safe owner of all persisted state.

    Usage:
        store = FlightRecordStore()
        store.load()
        store.append_records('JFK', flights)
        history = store.load_all_records()
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        max_records: Optional[int] = None,
        max_trend_points: Optional[int] = None,
        max_poll_log_entries: Optional[int] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self.max_records = max_records or config.retention.max_flight_records
        self.max_trend_points = max_trend_points or config.retention.max_trend_points
        self.max_poll_log_entries = max_poll_log_entries or config.retention.max_poll_log_entries

        self._lock = threading.RLock()

        self._airports: List[Airport] = []
        self._recipients: List[str] = []
        self._tracked: Dict[str, Dict[str, TrackedState]] = {}
        self._records: Deque[FlightRecord] = deque(maxlen=self.max_records)
        self._trends: Deque[DelayTrendPoint] = deque(maxlen=self.max_trend_points)
        self._poll_log: Dict[str, Deque[PollLogEntry]] = {}

        # Changes not yet written to the database
        self._pending_records: Deque[FlightRecord] = deque(maxlen=self.max_records)
        self._pending_trends: Deque[DelayTrendPoint] = deque(maxlen=self.max_trend_points)
        self._pending_poll_log: List[Tuple[str, PollLogEntry]] = []
        self._dirty: Set[str] = set()
        self._dirty_tracked: Set[str] = set()

        # Statistics
        self._flush_count = 0
        self._flush_failures = 0
        self._last_flush_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """
        Load prior state from the database.

        Empty tables (first run) leave every collection empty.

        Raises:
            PersistenceError if the database cannot be read.
        """
        try:
            with self._session_factory() as session:
                airports = session.execute(
                    select(MonitoredAirport).order_by(MonitoredAirport.position)
                ).scalars().all()
                recipients = session.execute(
                    select(Recipient).order_by(Recipient.position)
                ).scalars().all()
                tracked = session.execute(select(TrackedFlight)).scalars().all()
                records = session.execute(
                    select(FlightHistory)
                    .order_by(FlightHistory.id.desc())
                    .limit(self.max_records)
                ).scalars().all()
                trends = session.execute(
                    select(DelayTrend)
                    .order_by(DelayTrend.id.desc())
                    .limit(self.max_trend_points)
                ).scalars().all()
                poll_log = session.execute(
                    select(AirportPollLog).order_by(AirportPollLog.id)
                ).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f'Failed to load stored state: {e}') from e

        with self._lock:
            self._airports = [Airport(code=a.code, name=a.name) for a in airports]
            self._recipients = [r.number for r in recipients]

            self._tracked = {}
            for t in tracked:
                self._tracked.setdefault(t.airport_code, {})[t.flight_number] = TrackedState(
                    delay_minutes=t.delay_minutes,
                    status=t.status,
                    last_checked=_from_epoch(t.last_checked),
                )

            self._records.clear()
            self._records.extend(FlightRecord.from_row(r) for r in reversed(records))

            self._trends.clear()
            self._trends.extend(
                DelayTrendPoint(timestamp=_from_epoch(t.timestamp), average_delay=t.average_delay)
                for t in reversed(trends)
            )

            self._poll_log = {}
            for entry in poll_log:
                self._poll_log_for(entry.airport_code).append(
                    PollLogEntry(timestamp=_from_epoch(entry.timestamp), flight_count=entry.flight_count)
                )

        logger.info(
            f'Loaded {len(self._airports)} airport(s), {len(self._records)} flight records, '
            f'{len(self._trends)} trend points'
        )

    # -------------------------------------------------------------------------
    # Flight history
    # -------------------------------------------------------------------------

    def append_records(
        self,
        airport_code: str,
        flights: Sequence['FlightObservation'],
        timestamp: Optional[datetime] = None,
    ) -> List[FlightRecord]:
        """
        Append one record per flight, plus a trend point if any were delayed.

        The trend point is the mean delay among flights with delay > 0,
        rounded to one decimal. History and trend series are trimmed
        oldest-first to their retention bounds.

        Returns the records that were appended.
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        records = [FlightRecord.from_observation(airport_code, f, timestamp) for f in flights]

        delays = [f.delay_minutes for f in flights if f.delay_minutes > 0]
        trend = None
        if delays:
            trend = DelayTrendPoint(
                timestamp=timestamp,
                average_delay=round_half_up(sum(delays) / len(delays), 1),
            )

        log_entry = PollLogEntry(timestamp=timestamp, flight_count=len(flights))

        with self._lock:
            # deque(maxlen) evicts from the front as we extend
            self._records.extend(records)
            self._pending_records.extend(records)

            if trend:
                self._trends.append(trend)
                self._pending_trends.append(trend)

            self._poll_log_for(airport_code).append(log_entry)
            self._pending_poll_log.append((airport_code, log_entry))

            self._persist()

        logger.debug(
            f'Stored {len(records)} records for {airport_code}'
            + (f', trend point {trend.average_delay}m' if trend else '')
        )
        return records

    def load_all_records(self) -> List[FlightRecord]:
        """Full bounded history in append (chronological) order."""
        with self._lock:
            return list(self._records)

    def load_trend_points(self) -> List[DelayTrendPoint]:
        """Bounded trend series in append order."""
        with self._lock:
            return list(self._trends)

    def load_poll_log(self, airport_code: str) -> List[PollLogEntry]:
        with self._lock:
            return list(self._poll_log.get(airport_code, ()))

    def _poll_log_for(self, airport_code: str) -> Deque[PollLogEntry]:
        if airport_code not in self._poll_log:
            self._poll_log[airport_code] = deque(maxlen=self.max_poll_log_entries)
        return self._poll_log[airport_code]

    # -------------------------------------------------------------------------
    # Tracked flight state
    # -------------------------------------------------------------------------

    def get_tracked_state(self, airport_code: str) -> Dict[str, TrackedState]:
        with self._lock:
            return dict(self._tracked.get(airport_code, {}))

    def replace_tracked_state(self, airport_code: str, state: Dict[str, TrackedState]) -> None:
        """Wholesale replacement; flights absent from ``state`` are forgotten."""
        with self._lock:
            self._tracked[airport_code] = dict(state)
            self._dirty_tracked.add(airport_code)
            self._persist()

    def drop_tracked_state(self, airport_code: str) -> None:
        with self._lock:
            if self._tracked.pop(airport_code, None) is not None:
                self._dirty_tracked.add(airport_code)
                self._persist()

    # -------------------------------------------------------------------------
    # Airports and recipients
    # -------------------------------------------------------------------------

    def get_airports(self) -> List[Airport]:
        with self._lock:
            return list(self._airports)

    def save_airports(self, airports: Iterable[Airport]) -> None:
        with self._lock:
            self._airports = list(airports)
            self._dirty.add('airports')
            self._persist()

    def get_recipients(self) -> List[str]:
        with self._lock:
            return list(self._recipients)

    def save_recipients(self, numbers: Iterable[str]) -> None:
        with self._lock:
            self._recipients = list(numbers)
            self._dirty.add('recipients')
            self._persist()

    # -------------------------------------------------------------------------
    # Durability
    # -------------------------------------------------------------------------

    @property
    def has_pending_changes(self) -> bool:
        with self._lock:
            return bool(
                self._pending_records or self._pending_trends or self._pending_poll_log
                or self._dirty or self._dirty_tracked
            )

    def _persist(self) -> None:
        """Flush after a mutation; failures are logged, memory stays authoritative."""
        try:
            self.flush()
        except PersistenceError as e:
            self._flush_failures += 1
            self._last_flush_error = str(e)
            logger.error(f'State not persisted, keeping changes queued: {e}')

    def flush(self) -> None:
        """
        Write all queued changes in one transaction.

        Raises:
            PersistenceError if the transaction fails. Queued changes are
            kept for the next attempt.
        """
        with self._lock:
            if not self.has_pending_changes:
                return

            try:
                with get_session(self._session_factory) as session:
                    self._write_changes(session)
            except SQLAlchemyError as e:
                raise PersistenceError(f'Failed to write state: {e}') from e

            self._pending_records.clear()
            self._pending_trends.clear()
            self._pending_poll_log.clear()
            self._dirty.clear()
            self._dirty_tracked.clear()
            self._flush_count += 1
            self._last_flush_error = None

    def _write_changes(self, session) -> None:
        if 'airports' in self._dirty:
            session.execute(delete(MonitoredAirport))
            if self._airports:
                session.execute(insert(MonitoredAirport), [
                    {'code': a.code, 'name': a.name, 'position': i}
                    for i, a in enumerate(self._airports)
                ])

        if 'recipients' in self._dirty:
            session.execute(delete(Recipient))
            if self._recipients:
                session.execute(insert(Recipient), [
                    {'number': n, 'position': i}
                    for i, n in enumerate(self._recipients)
                ])

        for code in self._dirty_tracked:
            session.execute(delete(TrackedFlight).where(TrackedFlight.airport_code == code))
            state = self._tracked.get(code)
            if state:
                session.execute(insert(TrackedFlight), [
                    {
                        'airport_code': code,
                        'flight_number': number,
                        'delay_minutes': s.delay_minutes,
                        'status': s.status,
                        'last_checked': _to_epoch(s.last_checked),
                    }
                    for number, s in state.items()
                ])

        if self._pending_records:
            session.execute(insert(FlightHistory), [r.to_row() for r in self._pending_records])
            _trim_oldest(session, FlightHistory, self.max_records)

        if self._pending_trends:
            session.execute(insert(DelayTrend), [
                {'timestamp': _to_epoch(t.timestamp), 'average_delay': t.average_delay}
                for t in self._pending_trends
            ])
            _trim_oldest(session, DelayTrend, self.max_trend_points)

        if self._pending_poll_log:
            session.execute(insert(AirportPollLog), [
                {
                    'airport_code': code,
                    'timestamp': _to_epoch(entry.timestamp),
                    'flight_count': entry.flight_count,
                }
                for code, entry in self._pending_poll_log
            ])
            for code in {code for code, _ in self._pending_poll_log}:
                _trim_oldest(
                    session, AirportPollLog, self.max_poll_log_entries,
                    AirportPollLog.airport_code == code,
                )

    @property
    def stats(self) -> dict:
        """Get store statistics."""
        with self._lock:
            return {
                'airports': len(self._airports),
                'recipients': len(self._recipients),
                'records': len(self._records),
                'trend_points': len(self._trends),
                'flush_count': self._flush_count,
                'flush_failures': self._flush_failures,
                'last_flush_error': self._last_flush_error,
                'pending_changes': self.has_pending_changes,
            }


def _trim_oldest(session, model, keep: int, *criteria) -> int:
    """
    Delete all but the newest ``keep`` rows of an append-only table.

    Ids grow with insertion order, so the id of the first row past the
    bound marks everything at or below it for deletion.
    """
    stmt = select(model.id)
    if criteria:
        stmt = stmt.where(*criteria)
    stmt = stmt.order_by(model.id.desc()).offset(keep).limit(1)

    cutoff = session.execute(stmt).scalar()
    if cutoff is None:
        return 0

    result = session.execute(delete(model).where(model.id <= cutoff, *criteria))
    return result.rowcount
