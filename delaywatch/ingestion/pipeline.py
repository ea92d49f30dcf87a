"""
Poll cycle pipeline - orchestrates fetch, detect, notify, and store.

One cycle visits every monitored airport in order. Airports are handled
strictly one at a time to stay inside the provider's rate limits and to
keep a single writer on the shared store.

Per-airport stages:
1. Fetch: Pull the departure board from the flight provider
2. Detect: Compare with tracked state, persist the rebuilt state
3. Notify: Fan delay events out to every registered recipient
4. Append: Add the snapshot to the flight history (always)

A failure at one airport (provider or otherwise) is logged and the cycle moves on to the
next. A cycle never fails as a whole; partial success is normal.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Callable, Protocol

from delaywatch.analytics.delay_detection import DelayDetector, DelayEvent
from delaywatch.config import config
from delaywatch.errors import ProviderError
from delaywatch.flights import FlightObservation
from delaywatch.registry import AirportRegistry, RecipientRegistry
from delaywatch.services.notifications import NotificationFanout, DeliveryResult
from delaywatch.store import FlightRecordStore
from delaywatch.tracker import SnapshotStateTracker

logger = logging.getLogger(__name__)


class FlightProvider(Protocol):
    def get_flights(self, airport_code: str, direction: str = 'departures') -> List[FlightObservation]:
        ...


@dataclass
class AirportOutcome:
    """What happened at one airport during one cycle."""
    airport_code: str
    flight_count: int = 0
    events: List[DelayEvent] = field(default_factory=list)
    deliveries: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            'airport': self.airport_code,
            'flights': self.flight_count,
            'delayEvents': [e.to_dict() for e in self.events],
            'notifications': [d.to_dict() for d in self.deliveries],
            'error': self.error,
        }


@dataclass
class CycleSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[AirportOutcome] = field(default_factory=list)

    @property
    def event_count(self) -> int:
        return sum(len(o.events) for o in self.outcomes)

    @property
    def failed_airports(self) -> List[str]:
        return [o.airport_code for o in self.outcomes if not o.ok]

    def to_dict(self) -> dict:
        return {
            'startedAt': self.started_at.isoformat(),
            'finishedAt': self.finished_at.isoformat() if self.finished_at else None,
            'airports': [o.to_dict() for o in self.outcomes],
        }


class MonitorPipeline:
    """
    Manages the poll cycle lifecycle.

    Coordinates the flight provider, delay detector, notification fanout,
    and store. Can run as a background thread for periodic polling.
    """

    def __init__(
        self,
        provider: FlightProvider,
        store: FlightRecordStore,
        airports: AirportRegistry,
        recipients: RecipientRegistry,
        fanout: NotificationFanout,
        detector: Optional[DelayDetector] = None,
        direction: Optional[str] = None,
    ):
        self.provider = provider
        self.store = store
        self.airports = airports
        self.recipients = recipients
        self.fanout = fanout
        self.detector = detector or DelayDetector()
        self.tracker = SnapshotStateTracker(store)
        self.direction = direction or config.monitor.fetch_direction

        # Cycles never overlap, whether triggered by the timer or the API
        self._cycle_lock = threading.Lock()

        # State tracking
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_count: int = 0
        self._error_count: int = 0
        self._last_summary: Optional[CycleSummary] = None

        # Callbacks for external integration
        self._on_cycle_callbacks: List[Callable[[CycleSummary], None]] = []

    def add_cycle_callback(self, callback: Callable[[CycleSummary], None]) -> None:
        """Register callback invoked with the summary after each cycle."""
        self._on_cycle_callbacks.append(callback)

    def process_airport(self, airport_code: str, now: Optional[datetime] = None) -> AirportOutcome:
        """
        Run all stages for one airport.

        Errors are captured in the outcome instead of raised, so one
        airport never stops the rest of the cycle.
        """
        now = now or datetime.now(timezone.utc)
        outcome = AirportOutcome(airport_code=airport_code)

        try:
            return self._run_stages(airport_code, outcome, now)
        except ProviderError as e:
            self._error_count += 1
            outcome.error = f'{type(e).__name__}: {e}'
            logger.error(f'Error checking {airport_code}: {e}')
        except Exception as e:
            self._error_count += 1
            outcome.error = f'{type(e).__name__}: {e}'
            logger.exception(f'Unexpected error checking {airport_code}: {e}')
        return outcome

    def _run_stages(self, airport_code: str, outcome: AirportOutcome, now: datetime) -> AirportOutcome:
        # Stage 1: Fetch
        flights = self.provider.get_flights(airport_code, self.direction)
        outcome.flight_count = len(flights)

        # Stage 2: Detect against last poll, then replace tracked state
        previous = self.tracker.load(airport_code)
        result = self.detector.detect(flights, previous, now=now)
        self.tracker.save(airport_code, result.new_state)
        outcome.events = result.events

        # Stage 3: Notify
        if result.events:
            logger.info(f'Found {len(result.events)} delayed flight(s) at {airport_code}')
            outcome.deliveries = self.fanout.notify_all(result.events, self.recipients.list())

        # Stage 4: Append to history
        self.store.append_records(airport_code, flights, timestamp=now)

        return outcome

    def run_cycle(self) -> CycleSummary:
        """
        Execute one poll cycle over every monitored airport.

        Blocks while another cycle is running so cycles never interleave.
        """
        with self._cycle_lock:
            summary = CycleSummary(started_at=datetime.now(timezone.utc))
            airports = self.airports.list()

            if not airports:
                logger.info('No airports being monitored')
            else:
                logger.info(f'Running scheduled flight check for {len(airports)} airport(s)')

            for airport in airports:
                logger.info(f'Checking flights for {airport.code}...')
                summary.outcomes.append(self.process_airport(airport.code))

            summary.finished_at = datetime.now(timezone.utc)
            self._cycle_count += 1
            self._last_summary = summary

        failed = summary.failed_airports
        logger.info(
            f'Scheduled check completed: {summary.event_count} delay event(s)'
            + (f', failed: {", ".join(failed)}' if failed else '')
        )

        # Notify callbacks
        for callback in self._on_cycle_callbacks:
            try:
                callback(summary)
            except Exception as e:
                logger.error(f'Cycle callback error: {e}')

        return summary

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run poll cycles on a fixed period.

        This method blocks - use start_background() for non-blocking.
        """
        interval = interval or config.monitor.check_interval_minutes * 60
        self._running = True
        self._stop_event.clear()

        logger.info(f'Starting periodic flight checks (interval={interval}s)')

        while self._running:
            started = time.monotonic()
            try:
                self.run_cycle()
            except Exception as e:
                self._error_count += 1
                logger.exception(f'Poll cycle error: {e}')
            # Period is measured start-to-start; a long cycle delays the next one
            remaining = max(0.0, interval - (time.monotonic() - started))
            if self._stop_event.wait(remaining):
                break

        logger.info('Periodic flight checks stopped')

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start polling in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Polling already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            daemon=True,
        )
        self._thread.start()
        logger.info('Background polling started')

    def stop(self) -> None:
        """Stop background polling after the current cycle."""
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        logger.info('Polling stopped')

    @property
    def stats(self) -> dict:
        """Get pipeline statistics."""
        last = self._last_summary
        return {
            'cycle_count': self._cycle_count,
            'error_count': self._error_count,
            'running': self._running,
            'last_cycle_started': last.started_at.isoformat() if last else None,
            'last_cycle_failed_airports': last.failed_airports if last else [],
            'notifications': self.fanout.stats,
        }
