"""
Analytics module for DelayWatch.

- Delay-change detection between successive polls
- Time-windowed rollups over the bounded flight history
"""

from delaywatch.analytics.delay_detection import DelayDetector, DelayEvent, DetectionResult
from delaywatch.analytics.report import AnalyticsAggregator, AnalyticsReport, TimeFilter

__all__ = [
    'DelayDetector',
    'DelayEvent',
    'DetectionResult',
    'AnalyticsAggregator',
    'AnalyticsReport',
    'TimeFilter',
]
