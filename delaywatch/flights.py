"""
Flight observation types shared by ingestion, detection, and storage.

A FlightObservation is one row of an airport's flight board at one point
in time. Missing provider fields fall back to display placeholders so
downstream code never has to guard against None for names, terminals,
or gates.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Any, Dict


class FlightStatus(str, Enum):
    """Flight status as reported by the provider."""
    SCHEDULED = 'scheduled'
    ACTIVE = 'active'
    LANDED = 'landed'
    CANCELLED = 'cancelled'
    INCIDENT = 'incident'
    DIVERTED = 'diverted'
    UNKNOWN = 'unknown'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'FlightStatus':
        try:
            return cls(str(value or '').lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class DepartureInfo:
    airport: str
    iata: str
    scheduled_time: Optional[str]
    estimated_time: Optional[str]
    actual_time: Optional[str]
    delay_minutes: int
    terminal: str
    gate: str


@dataclass(frozen=True)
class ArrivalInfo:
    airport: str
    iata: str
    scheduled_time: Optional[str]
    estimated_time: Optional[str]
    actual_time: Optional[str]
    terminal: str
    gate: str


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested provider object; absent or null means empty."""
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f'Expected an object for {key!r}, got {type(value).__name__}')
    return value


def _parse_delay(value: Any) -> int:
    """Provider reports delay in minutes, sometimes null or as a string."""
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class FlightObservation:
    """
    One flight as seen in one fetch.

    Missing fields fall back to display placeholders so downstream code
    never has to guard against None for names, terminals, or gates.
    """
    flight_number: str
    airline: str
    departure: DepartureInfo
    arrival: ArrivalInfo
    status: FlightStatus
    aircraft: str = 'N/A'

    @property
    def delay_minutes(self) -> int:
        return self.departure.delay_minutes

    @classmethod
    def from_api(cls, payload: Dict[str, Any], airport_code: str) -> 'FlightObservation':
        """
        Build an observation from one entry of the provider's ``data`` list.

        Raises:
            ValueError if a nested section is present but not an object
        """
        flight = _section(payload, 'flight')
        airline = _section(payload, 'airline')
        dep = _section(payload, 'departure')
        arr = _section(payload, 'arrival')
        aircraft = _section(payload, 'aircraft')

        return cls(
            flight_number=flight.get('iata') or 'N/A',
            airline=airline.get('name') or 'Unknown',
            departure=DepartureInfo(
                airport=dep.get('airport') or 'Unknown',
                iata=dep.get('iata') or airport_code,
                scheduled_time=dep.get('scheduled'),
                estimated_time=dep.get('estimated'),
                actual_time=dep.get('actual'),
                delay_minutes=_parse_delay(dep.get('delay')),
                terminal=dep.get('terminal') or 'N/A',
                gate=dep.get('gate') or 'N/A',
            ),
            arrival=ArrivalInfo(
                airport=arr.get('airport') or 'Unknown',
                iata=arr.get('iata') or 'N/A',
                scheduled_time=arr.get('scheduled'),
                estimated_time=arr.get('estimated'),
                actual_time=arr.get('actual'),
                terminal=arr.get('terminal') or 'N/A',
                gate=arr.get('gate') or 'N/A',
            ),
            status=FlightStatus.parse(payload.get('flight_status')),
            aircraft=aircraft.get('registration') or 'N/A',
        )

    def to_dict(self) -> dict:
        """JSON shape consumed by the dashboard."""
        return {
            'flightNumber': self.flight_number,
            'airline': self.airline,
            'departure': {
                'airport': self.departure.airport,
                'iata': self.departure.iata,
                'scheduledTime': self.departure.scheduled_time,
                'estimatedTime': self.departure.estimated_time,
                'actualTime': self.departure.actual_time,
                'delay': self.departure.delay_minutes,
                'terminal': self.departure.terminal,
                'gate': self.departure.gate,
            },
            'arrival': {
                'airport': self.arrival.airport,
                'iata': self.arrival.iata,
                'scheduledTime': self.arrival.scheduled_time,
                'estimatedTime': self.arrival.estimated_time,
                'actualTime': self.arrival.actual_time,
                'terminal': self.arrival.terminal,
                'gate': self.arrival.gate,
            },
            'status': self.status.value,
            'aircraft': self.aircraft,
        }


