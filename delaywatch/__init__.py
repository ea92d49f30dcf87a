"""
DelayWatch package.

Flight delay monitoring service built with Flask, SQLAlchemy, and NumPy.

Modules:
    api/         REST endpoints for monitored airports, recipients, analytics
    models/      SQLAlchemy ORM models (airports, tracked flights, history)
    ingestion/   AviationStack client and the poll-cycle pipeline
    analytics/   Delay-change detection and rolling analytics reports
    services/    SMS gateway and notification fanout
    store.py     In-memory authoritative state, flushed to the database
    tracker.py   Last-observed delay/status per flight
    registry.py  Monitored airports and notification recipients
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
