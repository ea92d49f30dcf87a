"""
External integration services.

Outbound alert delivery: the SMS gateway adapter and the rate-limited
fanout that drives it.
"""

from delaywatch.services.sms_gateway import TwilioSmsGateway, DeliveryReceipt
from delaywatch.services.notifications import (
    NotificationFanout,
    FixedIntervalThrottle,
    DeliveryResult,
    format_sms,
    format_summary,
)

__all__ = [
    'TwilioSmsGateway',
    'DeliveryReceipt',
    'NotificationFanout',
    'FixedIntervalThrottle',
    'DeliveryResult',
    'format_sms',
    'format_summary',
]
