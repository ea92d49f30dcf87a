"""
Rolling analytics over the flight-record history.

Produces the dashboard rollup for a time window:
- Headline numbers: total, delayed, average delay, on-time percentage
- Status mix (cancelled / active / delayed / on time)
- Worst airlines by mean delay, busiest destinations
- Scheduled departures per hour of day
- Most recent severe delays (>= 15 min)
- Delay trend line

The report is a pure function of the stored history and the requested
window. Calling it twice with unchanged history returns identical output.

Note: the delay trend series is returned whole, not clipped to the
window. Trend points are already capped at one year of polls and the
dashboard draws the full line regardless of the selected filter.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List, Dict

import numpy as np

from delaywatch.store import FlightRecordStore, FlightRecord, DelayTrendPoint, round_half_up

logger = logging.getLogger(__name__)

SEVERE_DELAY_MINUTES = 15
TOP_AIRLINES = 5
TOP_DESTINATIONS = 5
RECENT_DELAYS = 20


class TimeFilter(str, Enum):
    """Report windows offered by the dashboard."""
    DAY = '24h'
    WEEK = '7d'
    MONTH = '30d'
    YEAR = '1y'
    ALL = 'all'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'TimeFilter':
        """Unknown or missing values mean the whole history."""
        try:
            return cls((value or 'all').strip().lower())
        except ValueError:
            logger.debug(f'Unknown time filter {value!r}, using all')
            return cls.ALL

    @property
    def window(self) -> Optional[timedelta]:
        return _WINDOWS[self]


_WINDOWS = {
    TimeFilter.DAY: timedelta(days=1),
    TimeFilter.WEEK: timedelta(days=7),
    TimeFilter.MONTH: timedelta(days=30),
    TimeFilter.YEAR: timedelta(days=365),
    TimeFilter.ALL: None,
}


def scheduled_hour(value: Optional[str]) -> Optional[int]:
    """Hour of day as written in the provider's ISO timestamp."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).hour
    except ValueError:
        return None


@dataclass(frozen=True)
class StatusDistribution:
    on_time: int = 0
    delayed: int = 0
    cancelled: int = 0
    active: int = 0

    def to_dict(self) -> dict:
        return {
            'onTime': self.on_time,
            'delayed': self.delayed,
            'cancelled': self.cancelled,
            'active': self.active,
        }


@dataclass(frozen=True)
class RecentDelay:
    flight_number: str
    airline: str
    departure: Optional[str]
    arrival: Optional[str]
    delay: int
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'flightNumber': self.flight_number,
            'airline': self.airline,
            'departure': self.departure,
            'arrival': self.arrival,
            'delay': self.delay,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class AnalyticsReport:
    """Computed rollup; never stored, never mutated after creation."""
    time_filter: TimeFilter = TimeFilter.ALL
    total_flights: int = 0
    delayed_flights: int = 0
    on_time_flights: int = 0
    average_delay: float = 0.0
    on_time_percentage: float = 100.0
    status_distribution: StatusDistribution = field(default_factory=StatusDistribution)
    airline_delays: Dict[str, int] = field(default_factory=dict)
    hourly_distribution: Dict[int, int] = field(default_factory=dict)
    top_destinations: Dict[str, int] = field(default_factory=dict)
    recent_delays: List[RecentDelay] = field(default_factory=list)
    delay_trends: List[DelayTrendPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        """JSON shape consumed by the analytics dashboard."""
        return {
            'timeFilter': self.time_filter.value,
            'totalFlights': self.total_flights,
            'delayedFlights': self.delayed_flights,
            'onTimeFlights': self.on_time_flights,
            'averageDelay': self.average_delay,
            'onTimePercentage': self.on_time_percentage,
            'statusDistribution': self.status_distribution.to_dict(),
            'airlineDelays': dict(self.airline_delays),
            'delayTrends': [t.to_dict() for t in self.delay_trends],
            'hourlyDistribution': {str(h): c for h, c in self.hourly_distribution.items()},
            'topDestinations': dict(self.top_destinations),
            'recentDelays': [d.to_dict() for d in self.recent_delays],
        }


class AnalyticsAggregator:
    """
    Builds AnalyticsReports from the store's history.

    Reads a copy of the history under the store's lock, so a report can be
    generated while a poll cycle is appending.
    """

    def __init__(self, store: FlightRecordStore):
        self.store = store

    def generate_report(
        self,
        time_filter: Optional[str] = 'all',
        now: Optional[datetime] = None,
    ) -> AnalyticsReport:
        """Compute the rollup for '24h', '7d', '30d', '1y' or 'all'."""
        window_filter = TimeFilter.parse(time_filter)
        now = now or datetime.now(timezone.utc)

        records = self.filter_records(self.store.load_all_records(), window_filter, now)

        if not records:
            return AnalyticsReport(time_filter=window_filter)

        delays = np.array([r.delay_minutes for r in records], dtype=np.int64)
        delayed_mask = delays > 0
        total = len(records)
        delayed_count = int(delayed_mask.sum())
        on_time_count = total - delayed_count

        average_delay = 0.0
        if delayed_count:
            average_delay = round_half_up(float(np.mean(delays[delayed_mask])), 1)

        report = AnalyticsReport(
            time_filter=window_filter,
            total_flights=total,
            delayed_flights=delayed_count,
            on_time_flights=on_time_count,
            average_delay=average_delay,
            on_time_percentage=round_half_up(on_time_count / total * 100, 1),
            status_distribution=self._status_distribution(records),
            airline_delays=self._airline_delays(records),
            hourly_distribution=self._hourly_distribution(records),
            top_destinations=self._top_destinations(records),
            recent_delays=self._recent_delays(records),
            delay_trends=self.store.load_trend_points(),
        )

        logger.debug(f'Report {window_filter.value}: {total} flights, {delayed_count} delayed')
        return report

    @staticmethod
    def filter_records(
        records: List[FlightRecord],
        time_filter: TimeFilter,
        now: datetime,
    ) -> List[FlightRecord]:
        """Records with timestamp >= now - window (all records for 'all')."""
        window = time_filter.window
        if window is None:
            return list(records)
        cutoff = now - window
        return [r for r in records if r.timestamp >= cutoff]

    def _status_distribution(self, records: List[FlightRecord]) -> StatusDistribution:
        """Every record lands in exactly one bucket, checked in priority order."""
        counts = Counter()
        for r in records:
            if r.status == 'cancelled':
                counts['cancelled'] += 1
            elif r.status == 'active':
                counts['active'] += 1
            elif r.delay_minutes > 0:
                counts['delayed'] += 1
            else:
                counts['on_time'] += 1

        return StatusDistribution(
            on_time=counts['on_time'],
            delayed=counts['delayed'],
            cancelled=counts['cancelled'],
            active=counts['active'],
        )

    def _airline_delays(self, records: List[FlightRecord]) -> Dict[str, int]:
        """Mean delay per airline among delayed records, worst five."""
        by_airline: Dict[str, List[int]] = {}
        for r in records:
            if r.delay_minutes > 0:
                by_airline.setdefault(r.airline, []).append(r.delay_minutes)

        means = {
            airline: int(round_half_up(float(np.mean(values))))
            for airline, values in by_airline.items()
        }
        ranked = sorted(means.items(), key=lambda item: item[1], reverse=True)
        return dict(ranked[:TOP_AIRLINES])

    def _hourly_distribution(self, records: List[FlightRecord]) -> Dict[int, int]:
        hours = Counter()
        for r in records:
            hour = scheduled_hour(r.scheduled_time)
            if hour is not None:
                hours[hour] += 1
        return dict(sorted(hours.items()))

    def _top_destinations(self, records: List[FlightRecord]) -> Dict[str, int]:
        destinations = Counter(r.arrival_iata for r in records)
        # Counter.most_common keeps first-seen order among ties
        return dict(destinations.most_common(TOP_DESTINATIONS))

    def _recent_delays(self, records: List[FlightRecord]) -> List[RecentDelay]:
        severe = [r for r in records if r.delay_minutes >= SEVERE_DELAY_MINUTES]
        severe.sort(key=lambda r: r.timestamp, reverse=True)
        return [
            RecentDelay(
                flight_number=r.flight_number,
                airline=r.airline,
                departure=r.departure_iata,
                arrival=r.arrival_iata,
                delay=r.delay_minutes,
                timestamp=r.timestamp,
            )
            for r in severe[:RECENT_DELAYS]
        ]
