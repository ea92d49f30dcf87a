"""
API module for DelayWatch.

Provides REST endpoints for:
- Live flight boards and airport lookup
- Monitored airports, recipients, and manual poll cycles
- Analytics rollups
"""

from delaywatch.api.flights import flights_bp
from delaywatch.api.monitor import monitor_bp
from delaywatch.api.analytics import analytics_bp

__all__ = ['flights_bp', 'monitor_bp', 'analytics_bp']
