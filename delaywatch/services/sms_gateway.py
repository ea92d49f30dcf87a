"""
SMS gateway - delivers text messages through the Twilio REST API.

Uses plain requests with HTTP basic auth against the Messages resource,
so no vendor SDK is needed. Delivery never raises: every outcome comes
back as a DeliveryReceipt, leaving retry policy to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

from delaywatch.config import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReceipt:
    """Outcome of one send attempt."""
    success: bool
    sid: Optional[str] = None
    error: Optional[str] = None


def _json_body(response) -> dict:
    """Response JSON as a dict; anything else (or no JSON) is empty."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class TwilioSmsGateway:
    """
    Sends SMS via POST /Accounts/{sid}/Messages.json.

    Without credentials the gateway stays disabled and reports every
    send as failed instead of calling out.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        base_url: str = 'https://api.twilio.com/2010-04-01',
        timeout_seconds: int = 10,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds

        self.auth = None
        if account_sid and auth_token and from_number:
            self.auth = HTTPBasicAuth(account_sid, auth_token)
            logger.info(f'Twilio SMS gateway initialized, sending from {from_number}')
        else:
            logger.warning('Twilio credentials not set - SMS notifications disabled')

        self.session = requests.Session()

    @classmethod
    def from_config(cls) -> 'TwilioSmsGateway':
        """Create gateway from application configuration."""
        return cls(
            account_sid=config.twilio.account_sid,
            auth_token=config.twilio.auth_token,
            from_number=config.twilio.from_number,
            base_url=config.twilio.base_url,
            timeout_seconds=config.twilio.timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return self.auth is not None

    def deliver(self, recipient: str, text: str) -> DeliveryReceipt:
        """Send one message. Returns a receipt; never raises."""
        if not self.is_configured:
            logger.debug('SMS not sent - gateway not configured')
            return DeliveryReceipt(success=False, error='SMS gateway not configured')

        url = f'{self.base_url}/Accounts/{self.account_sid}/Messages.json'
        try:
            response = self.session.post(
                url,
                data={'To': recipient, 'From': self.from_number, 'Body': text},
                auth=self.auth,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f'Failed to send SMS to {recipient}: {e}')
            return DeliveryReceipt(success=False, error=str(e))

        body = _json_body(response)

        if response.status_code >= 400:
            message = body.get('message') or response.reason
            logger.error(f'Failed to send SMS to {recipient}: HTTP {response.status_code} {message}')
            return DeliveryReceipt(success=False, error=f'HTTP {response.status_code}: {message}')

        sid = body.get('sid')
        logger.info(f'SMS sent to {recipient} (SID {sid})')
        return DeliveryReceipt(success=True, sid=sid)
