"""
Data ingestion module for DelayWatch.

Handles fetching flight boards from AviationStack and running the poll
cycle that turns them into delay alerts and history.
"""

from delaywatch.ingestion.aviationstack_client import AviationStackClient
from delaywatch.flights import FlightObservation, FlightStatus
from delaywatch.ingestion.pipeline import MonitorPipeline, CycleSummary, AirportOutcome

__all__ = [
    'AviationStackClient',
    'FlightObservation',
    'FlightStatus',
    'MonitorPipeline',
    'CycleSummary',
    'AirportOutcome',
]
