"""
Unit Tests for mNotify SMS delivery and notification texts
"""

import unittest
from unittest import mock

import requests

from config.environment import AppConfig
from utils.messaging_service import (
    MessagingService,
    MnotifyParseError,
    MnotifyResponse,
    NotificationService,
    format_phone_number_for_mnotify,
    parse_mnotify_response,
)


def _response(payload, status_code=200):
    response = mock.Mock(status_code=status_code)
    if isinstance(payload, (dict, int, float)):
        response.json.return_value = payload
        response.text = str(payload)
    else:
        response.json.side_effect = ValueError('not json')
        response.text = payload
    return response


class TestMnotifyResponseParsing(unittest.TestCase):

    def test_numeric_payloads(self):
        self.assertEqual(parse_mnotify_response(1000), MnotifyResponse(1000))
        self.assertEqual(parse_mnotify_response(1007.0), MnotifyResponse(1007))
        self.assertIsInstance(parse_mnotify_response(1000.5), MnotifyParseError)

    def test_string_payloads(self):
        self.assertEqual(parse_mnotify_response('1000'), MnotifyResponse(1000))
        self.assertEqual(parse_mnotify_response('code: 1003'), MnotifyResponse(1003))
        self.assertIsInstance(parse_mnotify_response('OK'), MnotifyParseError)

    def test_object_payloads(self):
        self.assertEqual(parse_mnotify_response({'code': '1004'}), MnotifyResponse(1004))
        self.assertIsInstance(parse_mnotify_response({'code': 'abc'}), MnotifyParseError)
        self.assertIsInstance(parse_mnotify_response({'status': 'ok'}), MnotifyParseError)

    def test_booleans_and_other_types_are_unparseable(self):
        self.assertIsInstance(parse_mnotify_response(True), MnotifyParseError)
        self.assertIsInstance(parse_mnotify_response(None), MnotifyParseError)
        self.assertIsInstance(parse_mnotify_response([1000]), MnotifyParseError)

    def test_code_meanings(self):
        self.assertTrue(MnotifyResponse(1000).success)
        self.assertTrue(MnotifyResponse(1007).success)
        self.assertFalse(MnotifyResponse(1003).success)
        self.assertEqual(MnotifyResponse(1003).message, 'Insufficient SMS balance')
        self.assertEqual(MnotifyResponse(4242).message, 'Unknown response code: 4242')


class TestPhoneFormatting(unittest.TestCase):

    def test_local_and_international_forms(self):
        self.assertEqual(format_phone_number_for_mnotify('0241234567'), '233241234567')
        self.assertEqual(format_phone_number_for_mnotify('+233 24 123 4567'), '233241234567')
        self.assertEqual(format_phone_number_for_mnotify('241234567'), '233241234567')

    def test_empty_input(self):
        self.assertEqual(format_phone_number_for_mnotify(None), '')
        self.assertEqual(format_phone_number_for_mnotify(''), '')
        self.assertEqual(format_phone_number_for_mnotify('---'), '')


class TestSendSms(unittest.TestCase):

    def setUp(self):
        self.service = MessagingService(AppConfig(MNOTIFY_API_KEY='test-key'))

    @mock.patch('utils.messaging_service.requests.get')
    def test_success_code(self, mock_get):
        mock_get.return_value = _response(1000)

        result = self.service.send_sms('0241234567', 'hello')

        self.assertEqual(result, {'success': True, 'code': 1000, 'message': 'SMS sent successfully'})
        params = mock_get.call_args.kwargs['params']
        self.assertEqual(params['to'], '233241234567')
        self.assertEqual(params['key'], 'test-key')
        self.assertEqual(params['sender_id'], 'DataMartGH')
        self.assertEqual(mock_get.call_args.kwargs['timeout'], 10)

    @mock.patch('utils.messaging_service.requests.get')
    def test_error_code(self, mock_get):
        mock_get.return_value = _response({'code': '1003'})

        result = self.service.send_sms('0241234567', 'hello')

        self.assertFalse(result['success'])
        self.assertEqual(result['code'], 1003)
        self.assertEqual(result['error'], 'Insufficient SMS balance')

    @mock.patch('utils.messaging_service.requests.get')
    def test_unreadable_body_on_200_is_assumed_sent(self, mock_get):
        mock_get.return_value = _response('OK')

        result = self.service.send_sms('0241234567', 'hello')

        self.assertTrue(result['success'])
        self.assertEqual(result['rawResponse'], 'OK')

    @mock.patch('utils.messaging_service.requests.get')
    def test_unreadable_body_on_error_status(self, mock_get):
        mock_get.return_value = _response('Bad Gateway', status_code=502)

        result = self.service.send_sms('0241234567', 'hello')

        self.assertFalse(result['success'])

    @mock.patch('utils.messaging_service.requests.get')
    def test_transport_failure_returns_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout('timed out')

        result = self.service.send_sms('0241234567', 'hello')

        self.assertFalse(result['success'])
        self.assertIn('timed out', result['error'])

    @mock.patch('utils.messaging_service.requests.get')
    def test_short_number_not_sent(self, mock_get):
        result = self.service.send_sms('12345', 'hello')

        self.assertEqual(result, {'success': False, 'error': 'Invalid phone number format'})
        mock_get.assert_not_called()


class TestNotificationService(unittest.TestCase):

    def setUp(self):
        self.messaging = mock.Mock()
        self.messaging.send_sms.return_value = {'success': True}
        self.notifications = NotificationService(self.messaging)
        self.user = {'name': 'Ama', 'phoneNumber': '0241234567'}

    def test_credit_text(self):
        self.notifications.send_credit(self.user, 19.5, 69.5)

        phone, message = self.messaging.send_sms.call_args[0]
        self.assertEqual(phone, '0241234567')
        self.assertEqual(
            message,
            'Hello Ama! Your DataMartGH account has been credited with GHS 19.50. '
            'Your new balance is GHS 69.50. Thank you for choosing DataMartGH!'
        )

    def test_debit_text_uses_default_reason(self):
        self.notifications.send_debit(self.user, 5, 10, None)

        message = self.messaging.send_sms.call_args[0][1]
        self.assertIn('GHS 5.00 has been deducted', message)
        self.assertIn('Reason: Administrative adjustment', message)

    def test_refund_text(self):
        order = {'price': 36.5, 'capacity': 10, 'network': 'YELLO'}

        self.notifications.send_refund(self.user, order, 46.5)

        message = self.messaging.send_sms.call_args[0][1]
        self.assertIn('refund of GHS 36.50 for your 10GB YELLO order', message)
        self.assertIn('GHS 46.50', message)

    def test_account_status_texts(self):
        self.notifications.send_account_status(dict(self.user, isDisabled=True, disableReason='Fraud review'))
        self.assertIn('disabled. Reason: Fraud review', self.messaging.send_sms.call_args[0][1])

        self.notifications.send_account_status(dict(self.user, isDisabled=False))
        self.assertIn('re-enabled', self.messaging.send_sms.call_args[0][1])

    def test_user_without_phone_is_skipped(self):
        result = self.notifications.send_credit({'name': 'Ama'}, 1, 1)

        self.assertFalse(result['success'])
        self.messaging.send_sms.assert_not_called()

    def test_delivery_exception_is_contained(self):
        self.messaging.send_sms.side_effect = RuntimeError('gateway down')

        result = self.notifications.send_credit(self.user, 1, 1)

        self.assertEqual(result, {'success': False, 'error': 'gateway down'})


if __name__ == '__main__':
    unittest.main()
