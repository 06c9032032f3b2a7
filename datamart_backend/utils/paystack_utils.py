"""
Paystack API Utilities

Thin client for the Paystack transaction verification endpoint used by the
admin transaction tools.
"""

import logging
import requests

from utils.money import round_amount

logger = logging.getLogger(__name__)


class PaystackError(Exception):
    """Paystack could not be reached or answered with an HTTP error."""


class PaystackClient:

    def __init__(self, config):
        self.secret_key = config.PAYSTACK_SECRET_KEY
        self.base_url = config.PAYSTACK_BASE_URL.rstrip('/')
        self.timeout = config.PAYSTACK_TIMEOUT_SECONDS

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json'
        }

    def verify(self, reference):
        """
        Verify a transaction reference with Paystack.

        Returns:
            dict: {'status': str, 'amount': float (cedis), 'raw': dict}

        Raises:
            PaystackError: on transport failure, HTTP error or an unreadable body
        """
        url = f"{self.base_url}/transaction/verify/{reference}"

        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Paystack verification request failed for {reference}: {str(e)}")
            raise PaystackError(f'Paystack request failed: {str(e)}') from e

        logger.info(f"Paystack verify {reference}: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"Paystack verify error: {response.status_code} - {response.text}")
            raise PaystackError(f'Paystack API error: {response.status_code} - {response.text}')

        try:
            body = response.json()
        except ValueError as e:
            raise PaystackError('Paystack returned a non-JSON response') from e

        data = body.get('data') or {}
        status = data.get('status') if body.get('status') else 'failed'

        # Paystack reports amounts in pesewas
        amount = round_amount((data.get('amount') or 0) / 100)

        return {
            'status': status or 'failed',
            'amount': amount,
            'raw': data,
        }
