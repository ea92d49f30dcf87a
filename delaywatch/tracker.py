"""
Snapshot state tracker - what each flight looked like at the last poll.

The detector compares a fresh snapshot against this state. State is kept
per airport and always replaced wholesale: callers hand over the complete
new mapping, never a patch.
"""

import logging
from typing import Dict

from delaywatch.store import FlightRecordStore, TrackedState

logger = logging.getLogger(__name__)


class SnapshotStateTracker:
    """Reads and replaces tracked flight state through the store."""

    def __init__(self, store: FlightRecordStore):
        self.store = store

    def load(self, airport_code: str) -> Dict[str, TrackedState]:
        """Last-persisted state for an airport (empty if never polled)."""
        return self.store.get_tracked_state(airport_code)

    def save(self, airport_code: str, new_state: Dict[str, TrackedState]) -> None:
        """Replace the airport's state with ``new_state``. No merging."""
        self.store.replace_tracked_state(airport_code, new_state)
        logger.debug(f'Tracking {len(new_state)} flights at {airport_code}')
