"""
Database models for DelayWatch.

Schema priorities:
1. Append-only flight history with bounded retention
2. Cheap wholesale replacement of small monitoring tables
3. Append order preserved through autoincrement ids
"""

from delaywatch.models.base import Base, engine, SessionLocal, init_db, get_session
from delaywatch.models.monitoring import MonitoredAirport, Recipient, TrackedFlight
from delaywatch.models.flight_history import FlightHistory, DelayTrend, AirportPollLog

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'init_db',
    'get_session',
    'MonitoredAirport',
    'Recipient',
    'TrackedFlight',
    'FlightHistory',
    'DelayTrend',
    'AirportPollLog',
]
