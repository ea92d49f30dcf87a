"""
Delay-change detection between successive polls of an airport.

Decides which flights deserve a notification by comparing the current
snapshot with the state recorded at the previous poll:

1. Below threshold (default 15 min): never notify
2. Not seen last poll: notify as a NEW delay
3. Was below threshold last poll, is at/above now: notify (crossed)
4. Delay grew by the worsening step (default 10 min) or more: notify

A flight that stays delayed without slipping further produces nothing,
so a stable delay is announced once rather than every cycle.

Detection is a pure function of its inputs. The new tracked state is
rebuilt from the snapshot regardless of whether anything fired, which
means flights missing from the snapshot silently drop out of tracking.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Sequence

from delaywatch.config import config
from delaywatch.flights import FlightObservation
from delaywatch.store import TrackedState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayEvent:
    """A flight whose delay warrants a notification."""
    flight: FlightObservation
    delay_minutes: int
    previous_delay_minutes: int
    is_new: bool

    @property
    def label(self) -> str:
        return 'NEW DELAY' if self.is_new else 'DELAY UPDATE'

    def to_dict(self) -> dict:
        return {
            'flight': self.flight.to_dict(),
            'delayMinutes': self.delay_minutes,
            'previousDelay': self.previous_delay_minutes,
            'isNew': self.is_new,
        }


@dataclass
class DetectionResult:
    events: List[DelayEvent] = field(default_factory=list)
    new_state: Dict[str, TrackedState] = field(default_factory=dict)


class DelayDetector:
    """
    Compares snapshots against tracked state.

    Configuration:
    - threshold_minutes: minimum delay to be notification-worthy (default 15)
    - worsening_minutes: growth that re-triggers a notification (default 10)
    """

    def __init__(
        self,
        threshold_minutes: Optional[int] = None,
        worsening_minutes: Optional[int] = None,
    ):
        self.threshold_minutes = threshold_minutes or config.monitor.delay_threshold
        self.worsening_minutes = worsening_minutes or config.monitor.worsening_step

    def detect(
        self,
        flights: Sequence[FlightObservation],
        previous_state: Dict[str, TrackedState],
        now: Optional[datetime] = None,
    ) -> DetectionResult:
        """Evaluate every flight independently and rebuild tracked state."""
        now = now or datetime.now(timezone.utc)
        result = DetectionResult()

        for flight in flights:
            event = self._evaluate(flight, previous_state.get(flight.flight_number))
            if event:
                result.events.append(event)

        # Last occurrence wins if the provider repeats a flight number
        for flight in flights:
            result.new_state[flight.flight_number] = TrackedState(
                delay_minutes=flight.delay_minutes,
                status=flight.status.value,
                last_checked=now,
            )

        return result

    def _evaluate(
        self,
        flight: FlightObservation,
        previous: Optional[TrackedState],
    ) -> Optional[DelayEvent]:
        delay = flight.delay_minutes
        if delay < self.threshold_minutes:
            return None

        if previous is None:
            return DelayEvent(
                flight=flight,
                delay_minutes=delay,
                previous_delay_minutes=0,
                is_new=True,
            )

        crossed = previous.delay_minutes < self.threshold_minutes
        worsened = delay - previous.delay_minutes >= self.worsening_minutes
        if not (crossed or worsened):
            return None

        return DelayEvent(
            flight=flight,
            delay_minutes=delay,
            previous_delay_minutes=previous.delay_minutes,
            is_new=False,
        )
