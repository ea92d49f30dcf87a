"""Shared fixtures: in-memory database, fake collaborators, fake clock."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from delaywatch.flights import FlightObservation, DepartureInfo, ArrivalInfo, FlightStatus
from delaywatch.models import init_db
from delaywatch.registry import AirportRegistry, RecipientRegistry
from delaywatch.services.notifications import FixedIntervalThrottle, NotificationFanout
from delaywatch.services.sms_gateway import DeliveryReceipt
from delaywatch.store import FlightRecordStore


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        poolclass=StaticPool,
        connect_args={'check_same_thread': False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    store = FlightRecordStore(session_factory=session_factory)
    store.load()
    return store


@pytest.fixture
def make_flight():
    """Factory for FlightObservations with sensible defaults."""
    def _make(
        number='AA100',
        delay=0,
        status='scheduled',
        airline='American Airlines',
        dep='JFK',
        arr='LAX',
        scheduled='2025-06-01T10:30:00+00:00',
        estimated=None,
        arrival_airport='Los Angeles International',
    ):
        return FlightObservation(
            flight_number=number,
            airline=airline,
            departure=DepartureInfo(
                airport='John F Kennedy International',
                iata=dep,
                scheduled_time=scheduled,
                estimated_time=estimated,
                actual_time=None,
                delay_minutes=delay,
                terminal='8',
                gate='B3',
            ),
            arrival=ArrivalInfo(
                airport=arrival_airport,
                iata=arr,
                scheduled_time=None,
                estimated_time=None,
                actual_time=None,
                terminal='N/A',
                gate='N/A',
            ),
            status=FlightStatus.parse(status),
        )
    return _make


class FakeProvider:
    """Serves canned boards per airport; an Exception value is raised."""

    def __init__(self, boards=None):
        self.boards = boards or {}
        self.calls = []

    def get_flights(self, airport_code, direction='departures'):
        self.calls.append((airport_code, direction))
        board = self.boards.get(airport_code, [])
        if isinstance(board, Exception):
            raise board
        return list(board)


class RecordingGateway:
    """Records every delivery; numbers in ``failing`` get a failed receipt."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    def deliver(self, recipient, text):
        self.sent.append((recipient, text))
        if recipient in self.failing:
            return DeliveryReceipt(success=False, error='undeliverable')
        return DeliveryReceipt(success=True, sid=f'SM{len(self.sent):04d}')


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def make_gateway():
    return RecordingGateway


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fanout(gateway, clock):
    return NotificationFanout(gateway, FixedIntervalThrottle(0.1, clock=clock, sleep=clock.sleep))


@pytest.fixture
def airports(store):
    return AirportRegistry(store)


@pytest.fixture
def recipients(store):
    return RecipientRegistry(store)
