"""
Notification fanout - one message per (delay event, recipient) pair.

Sends are strictly sequential and spaced by a fixed-interval throttle so
the SMS gateway's rate limits are respected. A failed send is recorded
and the loop moves on; nothing is retried within the same fanout.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from delaywatch.analytics.delay_detection import DelayEvent
from delaywatch.config import config
from delaywatch.services.sms_gateway import DeliveryReceipt

logger = logging.getLogger(__name__)


class MessageGateway(Protocol):
    def deliver(self, recipient: str, text: str) -> DeliveryReceipt:
        ...


class FixedIntervalThrottle:
    """
    Guarantees at least ``interval`` seconds between successive releases.

    The first call returns immediately. Clock and sleep are injectable so
    tests can observe the spacing without waiting on the wall clock.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_release: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until the next send is allowed. Returns seconds slept."""
        with self._lock:
            slept = 0.0
            if self._last_release is not None:
                remaining = self.interval - (self._clock() - self._last_release)
                if remaining > 0:
                    self._sleep(remaining)
                    slept = remaining
            self._last_release = self._clock()
            return slept


@dataclass(frozen=True)
class DeliveryResult:
    recipient: str
    flight_number: str
    success: bool
    sid: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            'recipient': self.recipient,
            'flightNumber': self.flight_number,
            'success': self.success,
        }
        if self.sid:
            result['sid'] = self.sid
        if self.error:
            result['error'] = self.error
        return result


def format_sms(event: DelayEvent) -> str:
    """SMS body: compact, fits in two segments."""
    flight = event.flight
    kind = 'NEW' if event.is_new else 'UPDATE'
    return (
        f'FLIGHT DELAY ({kind})\n\n'
        f'{flight.flight_number} ({flight.airline})\n'
        f'{flight.departure.iata} -> {flight.arrival.iata}\n'
        f'Delay: {event.delay_minutes} min\n'
        f'New time: {flight.departure.estimated_time or "TBA"}'
    )


def format_summary(event: DelayEvent) -> str:
    """One-line description for logs and the status page."""
    flight = event.flight
    return (
        f'{event.label}: Flight {flight.flight_number} ({flight.airline}) '
        f'to {flight.arrival.airport} is delayed by {event.delay_minutes} minutes. '
        f'New departure: {flight.departure.estimated_time or "TBA"}'
    )


class NotificationFanout:
    """Delivers every event to every recipient through one throttle."""

    def __init__(
        self,
        gateway: MessageGateway,
        throttle: Optional[FixedIntervalThrottle] = None,
    ):
        self.gateway = gateway
        self.throttle = throttle or FixedIntervalThrottle(config.monitor.send_interval_seconds)

        # Statistics
        self._sent = 0
        self._failed = 0

    def notify_all(
        self,
        events: Sequence[DelayEvent],
        recipients: Sequence[str],
    ) -> List[DeliveryResult]:
        """
        Attempt each (event, recipient) pair exactly once.

        Returns one result per pair, in event-major order.
        """
        results: List[DeliveryResult] = []
        if not events or not recipients:
            return results

        for event in events:
            text = format_sms(event)
            logger.info(format_summary(event))

            for recipient in recipients:
                self.throttle.wait()
                try:
                    receipt = self.gateway.deliver(recipient, text)
                except Exception as e:
                    logger.exception(f'SMS gateway error for {recipient}: {e}')
                    receipt = DeliveryReceipt(success=False, error=f'{type(e).__name__}: {e}')
                results.append(DeliveryResult(
                    recipient=recipient,
                    flight_number=event.flight.flight_number,
                    success=receipt.success,
                    sid=receipt.sid,
                    error=receipt.error,
                ))
                if receipt.success:
                    self._sent += 1
                else:
                    self._failed += 1

        logger.info(
            f'Fanout complete: {sum(r.success for r in results)}/{len(results)} messages delivered'
        )
        return results

    @property
    def stats(self) -> dict:
        return {
            'sent': self._sent,
            'failed': self._failed,
        }
