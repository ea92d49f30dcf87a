"""
Registries for monitored airports and notification recipients.

Each registry is an explicitly owned object handed to the poll pipeline
and the API layer, backed by the store for persistence. Input is
validated here, so bad values are rejected before they reach storage.
"""

import logging
import re
import threading
from typing import List

from delaywatch.errors import ValidationError
from delaywatch.store import FlightRecordStore, Airport

logger = logging.getLogger(__name__)

IATA_CODE = re.compile(r'^[A-Z]{3}$')
PHONE_SEPARATORS = re.compile(r'[\s\-().]')


def normalize_airport_code(code: str) -> str:
    normalized = (code or '').strip().upper()
    if not IATA_CODE.match(normalized):
        raise ValidationError(f'Invalid airport code {code!r}: expected a 3-letter IATA code')
    return normalized


def normalize_phone_number(number: str) -> str:
    """
    Normalize a phone number to E.164 form ('+' followed by digits).

    Spaces, dashes, dots and parentheses are ignored. The number must
    contain 8-15 digits and nothing else.
    """
    raw = PHONE_SEPARATORS.sub('', (number or '').strip())
    digits = raw[1:] if raw.startswith('+') else raw
    if not digits.isdigit() or not 8 <= len(digits) <= 15:
        raise ValidationError(
            f'Invalid phone number {number!r}: expected 8-15 digits, optionally prefixed with +'
        )
    return f'+{digits}'


class AirportRegistry:
    """Ordered set of monitored airports, keyed by IATA code."""

    def __init__(self, store: FlightRecordStore):
        self.store = store
        self._lock = threading.Lock()

    def list(self) -> List[Airport]:
        return self.store.get_airports()

    def add(self, code: str, name: str = '') -> List[Airport]:
        """Add an airport; adding a known code changes nothing."""
        code = normalize_airport_code(code)
        with self._lock:
            airports = self.store.get_airports()
            if any(a.code == code for a in airports):
                return airports
            airports.append(Airport(code=code, name=(name or '').strip()))
            self.store.save_airports(airports)
        logger.info(f'Added {code} to monitoring')
        return airports

    def remove(self, code: str) -> List[Airport]:
        """Remove an airport and forget its tracked flights."""
        code = (code or '').strip().upper()
        with self._lock:
            airports = [a for a in self.store.get_airports() if a.code != code]
            self.store.save_airports(airports)
            self.store.drop_tracked_state(code)
        logger.info(f'Removed {code} from monitoring')
        return airports


class RecipientRegistry:
    """Phone numbers that receive delay alerts."""

    def __init__(self, store: FlightRecordStore):
        self.store = store
        self._lock = threading.Lock()

    def list(self) -> List[str]:
        return self.store.get_recipients()

    def add(self, number: str) -> List[str]:
        """Register a number. Raises ValidationError on malformed input."""
        number = normalize_phone_number(number)
        with self._lock:
            numbers = self.store.get_recipients()
            if number in numbers:
                return numbers
            numbers.append(number)
            self.store.save_recipients(numbers)
        logger.info(f'Registered recipient {number[:-4]}****')
        return numbers

    def remove(self, number: str) -> List[str]:
        number = normalize_phone_number(number)
        with self._lock:
            numbers = [n for n in self.store.get_recipients() if n != number]
            self.store.save_recipients(numbers)
        return numbers
