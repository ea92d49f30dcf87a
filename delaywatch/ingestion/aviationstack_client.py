"""
AviationStack API client.

Fetches the departure (or arrival) board for one airport and normalizes
each entry into a typed FlightObservation. Handles:
- Access-key authentication
- Minimum spacing between requests
- Mapping HTTP and in-body API errors to typed provider errors

AviationStack flight payload (abridged):
    {
      "flight_status": "active",
      "airline":   {"name": "American Airlines"},
      "flight":    {"iata": "AA100"},
      "departure": {"airport": "...", "iata": "JFK", "scheduled": "...",
                    "estimated": "...", "actual": null, "delay": 20,
                    "terminal": "8", "gate": "B3"},
      "arrival":   {"airport": "...", "iata": "LAX", "scheduled": "...", ...},
      "aircraft":  {"registration": "N123AA"}
    }
"""

import logging
import time
from typing import Optional, List

import requests

from delaywatch.config import config
from delaywatch.errors import (
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderTransientError,
)
from delaywatch.flights import FlightObservation

logger = logging.getLogger(__name__)


AUTH_ERROR_CODES = {'invalid_access_key', 'missing_access_key', 'inactive_user'}
RATE_LIMIT_ERROR_CODES = {'usage_limit_reached', 'rate_limit_reached'}

DIRECTIONS = ('departures', 'arrivals')


class AviationStackClient:
    """
    Client for the AviationStack flights endpoint.

    Handles:
    - GET requests to /flights filtered by departure or arrival airport
    - Request spacing (internal tracking)
    - Typed errors instead of partially parsed data
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = 'http://api.aviationstack.com/v1',
        page_limit: int = 20,
        timeout_seconds: int = 15,
        min_request_interval: float = 1.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.page_limit = page_limit
        self.timeout_seconds = timeout_seconds

        if not self.api_key or self.api_key == 'your_api_key_here':
            logger.warning('AviationStack API key not configured - flight fetches will fail')

        self.session = requests.Session()
        self.last_request_time: float = 0
        self._min_interval = min_request_interval

    @classmethod
    def from_config(cls) -> 'AviationStackClient':
        """Create client from application configuration."""
        return cls(
            api_key=config.aviationstack.api_key,
            base_url=config.aviationstack.base_url,
            page_limit=config.aviationstack.page_limit,
            timeout_seconds=config.aviationstack.timeout_seconds,
            min_request_interval=config.aviationstack.min_request_interval,
        )

    def _wait_for_rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.time() - self.last_request_time
        if elapsed < self._min_interval:
            sleep_time = self._min_interval - elapsed
            logger.debug(f'Rate limiting: sleeping {sleep_time:.1f}s')
            time.sleep(sleep_time)

    def get_flights(
        self,
        airport_code: str,
        direction: str = 'departures',
    ) -> List[FlightObservation]:
        """
        Fetch the current flight board for an airport.

        Args:
            airport_code: IATA code of the airport
            direction: 'departures' (dep_iata filter) or 'arrivals' (arr_iata)

        Returns:
            List of FlightObservations in provider order

        Raises:
            ProviderAuthError: missing or rejected access key
            ProviderRateLimitError: HTTP 429 or quota exhausted
            ProviderTransientError: network failure or malformed response
        """
        if not self.api_key or self.api_key == 'your_api_key_here':
            raise ProviderAuthError('Flight API key is not configured (set FLIGHT_API_KEY)')

        airport_code = airport_code.strip().upper()
        params = {
            'access_key': self.api_key,
            'limit': self.page_limit,
        }
        if direction == 'arrivals':
            params['arr_iata'] = airport_code
        else:
            params['dep_iata'] = airport_code

        self._wait_for_rate_limit()
        logger.debug(f'Fetching {direction} for {airport_code}')

        try:
            response = self.session.get(
                f'{self.base_url}/flights',
                params=params,
                timeout=self.timeout_seconds,
            )
            self.last_request_time = time.time()
        except requests.exceptions.Timeout as e:
            logger.error(f'AviationStack API timeout for {airport_code}')
            raise ProviderTransientError(f'Flight API timed out: {e}') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'AviationStack request failed: {e}')
            raise ProviderTransientError(f'Failed to fetch flights: {e}') from e

        if response.status_code == 401:
            raise ProviderAuthError('Invalid API key. Please check FLIGHT_API_KEY')
        if response.status_code == 429:
            logger.warning('AviationStack rate limit exceeded')
            raise ProviderRateLimitError('API rate limit exceeded. Please try again later')
        if response.status_code != 200:
            logger.error(f'AviationStack API error: {response.status_code}')
            raise ProviderTransientError(f'Flight API returned HTTP {response.status_code}')

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderTransientError('Flight API returned invalid JSON') from e

        if not isinstance(data, dict):
            raise ProviderTransientError('Invalid API response')

        # AviationStack reports some failures with HTTP 200 and an error body
        error = data.get('error')
        if error:
            code = (error.get('code') or '') if isinstance(error, dict) else str(error)
            message = error.get('message', code) if isinstance(error, dict) else code
            if code in AUTH_ERROR_CODES:
                raise ProviderAuthError(message)
            if code in RATE_LIMIT_ERROR_CODES:
                raise ProviderRateLimitError(message)
            raise ProviderTransientError(f'Flight API error: {message}')

        raw = data.get('data')
        if not isinstance(raw, list):
            raise ProviderTransientError('Invalid API response')

        try:
            flights = [
                FlightObservation.from_api(entry, airport_code)
                for entry in raw
                if isinstance(entry, dict)
            ]
        except ValueError as e:
            logger.error(f'Malformed flight entry for {airport_code}: {e}')
            raise ProviderTransientError(f'Invalid flight entry in API response: {e}') from e
        logger.info(f'Received {len(flights)} {direction} for {airport_code}')
        return flights
