"""
Messaging Service for SMS notifications
Sends customer SMS through the mNotify HTTP API and builds the
notification texts for wallet and account events.
"""
import re
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Union

import requests

from utils.money import format_cedis

logger = logging.getLogger(__name__)


MNOTIFY_SUCCESS_CODES = {
    1000: 'SMS sent successfully',
    1007: 'SMS scheduled for later delivery',
}

MNOTIFY_ERROR_CODES = {
    1002: 'SMS sending failed',
    1003: 'Insufficient SMS balance',
    1004: 'Invalid API key',
    1005: 'Invalid phone number',
    1006: 'Invalid Sender ID. Sender ID must not be more than 11 Characters',
    1008: 'Empty message',
    1011: 'Numeric Sender IDs are not allowed',
    1012: 'Sender ID is not registered. Please contact support at senderids@mnotify.com',
}


@dataclass(frozen=True)
class MnotifyResponse:
    """A response code returned by mNotify."""
    code: int

    @property
    def success(self) -> bool:
        return self.code in MNOTIFY_SUCCESS_CODES

    @property
    def message(self) -> str:
        if self.code in MNOTIFY_SUCCESS_CODES:
            return MNOTIFY_SUCCESS_CODES[self.code]
        return MNOTIFY_ERROR_CODES.get(self.code, f'Unknown response code: {self.code}')


@dataclass(frozen=True)
class MnotifyParseError:
    """A payload from which no response code could be read."""
    raw: Any


def parse_mnotify_response(payload) -> Union[MnotifyResponse, MnotifyParseError]:
    """
    Read the response code out of an mNotify payload.

    mNotify answers with a bare number, a string containing the number, or a
    JSON object with a ``code`` key depending on the endpoint version.
    """
    if isinstance(payload, bool):
        return MnotifyParseError(payload)

    if isinstance(payload, int):
        return MnotifyResponse(payload)

    if isinstance(payload, float):
        return MnotifyResponse(int(payload)) if payload.is_integer() else MnotifyParseError(payload)

    if isinstance(payload, str):
        match = re.search(r'\d+', payload)
        return MnotifyResponse(int(match.group(0))) if match else MnotifyParseError(payload)

    if isinstance(payload, dict) and payload.get('code') not in (None, ''):
        try:
            return MnotifyResponse(int(payload['code']))
        except (TypeError, ValueError):
            return MnotifyParseError(payload)

    return MnotifyParseError(payload)


def format_phone_number_for_mnotify(phone: Optional[str]) -> str:
    """
    Normalise a Ghana phone number to the 233XXXXXXXXX form mNotify expects.
    Returns an empty string when nothing usable is left.
    """
    if not phone:
        return ''

    cleaned = re.sub(r'\D', '', str(phone))
    if not cleaned:
        return ''

    if cleaned.startswith('0'):
        cleaned = '233' + cleaned[1:]

    if not cleaned.startswith('233'):
        cleaned = '233' + cleaned

    return cleaned


class MessagingService:
    """Service for sending SMS messages through mNotify"""

    def __init__(self, config):
        self.api_key = config.MNOTIFY_API_KEY
        self.sender_id = config.MNOTIFY_SENDER_ID
        self.base_url = config.MNOTIFY_BASE_URL
        self.timeout = config.SMS_TIMEOUT_SECONDS

        if not self.api_key:
            logger.info("mNotify API key not configured, SMS delivery will fail until MNOTIFY_API_KEY is set")

    def send_sms(self, to_phone: str, message: str) -> Dict[str, Any]:
        """
        Send SMS message

        Args:
            to_phone: Recipient phone number (local or international format)
            message: Message content

        Returns:
            Dict with success flag and either code/message or error.
            Never raises.
        """
        formatted_phone = format_phone_number_for_mnotify(to_phone)
        if len(formatted_phone) < 12:
            logger.warning(f"SMS not sent, invalid phone number: {to_phone!r}")
            return {'success': False, 'error': 'Invalid phone number format'}

        params = {
            'key': self.api_key,
            'to': formatted_phone,
            'msg': message,
            'sender_id': self.sender_id,
        }

        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"mNotify request failed for {formatted_phone}: {str(e)}")
            return {'success': False, 'error': str(e)}

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        logger.debug(f"mNotify response: status={response.status_code} data={payload!r}")

        parsed = parse_mnotify_response(payload)

        if isinstance(parsed, MnotifyParseError):
            if response.status_code == 200:
                logger.warning(f"Could not parse mNotify response code from {parsed.raw!r}, assuming sent")
                return {'success': True, 'message': 'SMS sent (assumed successful)', 'rawResponse': parsed.raw}
            logger.error(f"mNotify returned HTTP {response.status_code} with unreadable payload {parsed.raw!r}")
            return {'success': False, 'error': f'Invalid response format: {parsed.raw!r}'}

        if parsed.success:
            logger.info(f"SMS to {formatted_phone} accepted by mNotify ({parsed.code})")
            return {'success': True, 'code': parsed.code, 'message': parsed.message}

        logger.error(f"mNotify rejected SMS to {formatted_phone}: {parsed.code} {parsed.message}")
        return {'success': False, 'code': parsed.code, 'error': parsed.message}


class NotificationService:
    """Builds customer notification texts and hands them to the messaging service."""

    def __init__(self, messaging_service):
        self.messaging = messaging_service

    def _deliver(self, user, message, kind):
        phone = (user or {}).get('phoneNumber')
        if not phone:
            logger.info(f"No phone number on user {(user or {}).get('_id')}, skipping {kind} SMS")
            return {'success': False, 'error': 'No phone number'}
        try:
            result = self.messaging.send_sms(phone, message)
        except Exception as e:
            # Delivery problems must not surface into a committed operation.
            logger.error(f"Failed to send {kind} SMS to {phone}: {str(e)}")
            return {'success': False, 'error': str(e)}
        if result.get('success'):
            logger.info(f"{kind.capitalize()} SMS sent to {phone}")
        else:
            logger.error(f"Failed to send {kind} SMS to {phone}: {result.get('error')}")
        return result

    def send_credit(self, user, amount, new_balance):
        message = (
            f"Hello {user.get('name', '')}! Your DataMartGH account has been credited with "
            f"GHS {format_cedis(amount)}. Your new balance is GHS {format_cedis(new_balance)}. "
            f"Thank you for choosing DataMartGH!"
        )
        return self._deliver(user, message, 'credit')

    def send_debit(self, user, amount, new_balance, reason=None):
        message = (
            f"DATAMART: GHS {format_cedis(amount)} has been deducted from your wallet. "
            f"Your new balance is GHS {format_cedis(new_balance)}. "
            f"Reason: {reason or 'Administrative adjustment'}. For inquiries, contact support."
        )
        return self._deliver(user, message, 'debit')

    def send_refund(self, user, order, new_balance):
        message = (
            f"Hello {user.get('name', '')}! Your DataMartGH account has been credited with a refund of "
            f"GHS {format_cedis(order.get('price'))} for your {order.get('capacity')}GB "
            f"{order.get('network')} order. Your new balance is GHS {format_cedis(new_balance)}. "
            f"We apologize for any inconvenience."
        )
        return self._deliver(user, message, 'refund')

    def send_account_status(self, user):
        if user.get('isDisabled'):
            message = (
                f"DATAMART: Your account has been disabled. Reason: {user.get('disableReason')}. "
                f"Contact support for assistance."
            )
        else:
            message = (
                "DATAMART: Your account has been re-enabled. You can now access all platform "
                "features. Thank you for choosing DATAMART."
            )
        return self._deliver(user, message, 'account status')
