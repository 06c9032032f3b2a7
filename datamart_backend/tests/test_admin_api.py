"""
Integration Tests for the admin HTTP API

Runs the Flask app against mongomock with a stubbed SMS gateway and Paystack
client.
"""

import unittest
from datetime import datetime, timedelta
from unittest import mock

import jwt
from bson import ObjectId

from app import create_app
from config.environment import AppConfig
from mongo_doubles import auth_header, insert_order, insert_user, make_mongo, snapshot_transaction_factory

SECRET = 'test-secret'


class AdminApiTestCase(unittest.TestCase):

    def setUp(self):
        self.mongo = make_mongo()
        self.db = self.mongo.db
        self.messaging = mock.Mock()
        self.messaging.send_sms.return_value = {'success': True, 'code': 1000, 'message': 'SMS sent successfully'}
        self.paystack = mock.Mock()

        self.app = create_app(
            config=AppConfig(SECRET_KEY=SECRET, TESTING=True),
            mongo=self.mongo,
            messaging_service=self.messaging,
            paystack_client=self.paystack,
            transaction_factory=snapshot_transaction_factory(self.db),
        )
        self.client = self.app.test_client()

        self.admin = insert_user(self.db, name='Ops Admin', role='admin', email='admin@datamartgh.shop')
        self.headers = auth_header(self.admin, SECRET)


class TestAuthentication(AdminApiTestCase):

    def test_health(self):
        response = self.client.get('/health')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['success'])

    def test_login_issues_a_usable_token(self):
        response = self.client.post('/api/auth/login', json={
            'email': 'ADMIN@datamartgh.shop', 'password': 'secret123'
        })

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['data']['user']['role'], 'admin')

        token = body['data']['token']
        listed = self.client.get('/api/admin/users', headers={'Authorization': f'Bearer {token}'})
        self.assertEqual(listed.status_code, 200)

    def test_login_failures(self):
        insert_user(self.db, email='blocked@example.com', isDisabled=True, disableReason='Fraud')

        self.assertEqual(self.client.post('/api/auth/login', json={}).status_code, 400)
        wrong = self.client.post('/api/auth/login', json={'email': 'admin@datamartgh.shop', 'password': 'nope'})
        self.assertEqual(wrong.status_code, 401)
        blocked = self.client.post('/api/auth/login', json={'email': 'blocked@example.com', 'password': 'secret123'})
        self.assertEqual(blocked.status_code, 403)

    def test_missing_invalid_and_expired_tokens(self):
        self.assertEqual(self.client.get('/api/admin/users').status_code, 401)

        bad = self.client.get('/api/admin/users', headers={'Authorization': 'Bearer not-a-jwt'})
        self.assertEqual(bad.status_code, 401)

        expired = jwt.encode(
            {'user_id': str(self.admin['_id']), 'exp': datetime.utcnow() - timedelta(hours=1)},
            SECRET, algorithm='HS256'
        )
        response = self.client.get('/api/admin/users', headers={'Authorization': f'Bearer {expired}'})
        self.assertEqual(response.status_code, 401)

    def test_non_admin_is_forbidden(self):
        customer = insert_user(self.db)

        response = self.client.get('/api/admin/users', headers=auth_header(customer, SECRET))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['message'], 'Admin access required')

    def test_disabled_admin_is_forbidden(self):
        self.db.users.update_one({'_id': self.admin['_id']}, {'$set': {'isDisabled': True}})

        self.assertEqual(self.client.get('/api/admin/users', headers=self.headers).status_code, 403)


class TestWalletEndpoints(AdminApiTestCase):

    def test_add_money(self):
        customer = insert_user(self.db, name='Kwesi', balance=50.0)

        response = self.client.put(
            f"/api/admin/users/{customer['_id']}/add-money", json={'amount': 19.5}, headers=self.headers
        )

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['currentBalance'], 69.5)
        self.assertEqual(body['previousBalance'], 50.0)
        self.assertEqual(body['msg'], "Successfully added 19.5 to Kwesi's wallet")
        self.assertEqual(body['transaction']['gateway'], 'admin-deposit')
        self.assertEqual(body['transaction']['metadata']['adminId'], str(self.admin['_id']))
        self.messaging.send_sms.assert_called_once()

    def test_add_money_rejects_bad_amount_and_unknown_user(self):
        customer = insert_user(self.db)

        response = self.client.put(
            f"/api/admin/users/{customer['_id']}/add-money", json={'amount': -3}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['msg'], 'Please provide a valid amount')

        response = self.client.put(
            f"/api/admin/users/{ObjectId()}/add-money", json={'amount': 3}, headers=self.headers
        )
        self.assertEqual(response.status_code, 404)

    def test_deduct_more_than_balance(self):
        customer = insert_user(self.db, balance=10.0)

        response = self.client.put(
            f"/api/admin/users/{customer['_id']}/deduct-money", json={'amount': 25}, headers=self.headers
        )

        self.assertEqual(response.status_code, 400)
        body = response.get_json()
        self.assertEqual(body['msg'], 'Insufficient balance')
        self.assertEqual(body['currentBalance'], 10.0)
        self.assertEqual(body['requestedDeduction'], 25.0)
        self.messaging.send_sms.assert_not_called()

    def test_wallet_balance_cannot_be_edited_directly(self):
        customer = insert_user(self.db, balance=10.0)

        response = self.client.put(
            f"/api/admin/users/{customer['_id']}", json={'walletBalance': 1000, 'name': 'Renamed'},
            headers=self.headers
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['name'], 'Renamed')
        self.assertEqual(self.db.users.find_one({'_id': customer['_id']})['walletBalance'], 10.0)


class TestUserEndpoints(AdminApiTestCase):

    def test_toggle_status(self):
        customer = insert_user(self.db)

        response = self.client.put(
            f"/api/admin/users/{customer['_id']}/toggle-status",
            json={'disableReason': 'Suspicious activity'}, headers=self.headers
        )

        body = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body['message'], 'User account has been disabled')
        self.assertEqual(body['user']['disableReason'], 'Suspicious activity')
        self.assertEqual(body['user']['disabledBy'], 'Ops Admin')

    def test_delete_admin_is_forbidden(self):
        other_admin = insert_user(self.db, role='admin')

        response = self.client.delete(f"/api/admin/users/{other_admin['_id']}", headers=self.headers)

        self.assertEqual(response.status_code, 403)

    def test_user_orders_bad_id(self):
        response = self.client.get('/api/admin/user-orders/abc', headers=self.headers)

        self.assertEqual(response.status_code, 400)


class TestOrderEndpoints(AdminApiTestCase):

    def test_fail_order_refunds(self):
        customer = insert_user(self.db, balance=10.0)
        insert_order(self.db, customer['_id'], price=36.5, geonet_reference='GN-77')

        response = self.client.put('/api/admin/orders/GN-77/status', json={'status': 'failed'}, headers=self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['msg'], 'Order status updated successfully')
        self.assertEqual(body['order']['previousStatus'], 'processing')
        self.assertEqual(body['order']['refund']['amount'], 36.5)
        self.assertEqual(self.db.users.find_one({'_id': customer['_id']})['walletBalance'], 46.5)

        again = self.client.put('/api/admin/orders/GN-77/status', json={'status': 'failed'}, headers=self.headers)
        self.assertEqual(again.get_json()['msg'], 'Status already set (no change needed)')
        self.assertEqual(self.db.users.find_one({'_id': customer['_id']})['walletBalance'], 46.5)

    def test_unknown_order_and_invalid_status(self):
        missing = self.client.put('/api/admin/orders/GN-0/status', json={'status': 'failed'}, headers=self.headers)
        self.assertEqual(missing.status_code, 404)

        invalid = self.client.put('/api/admin/orders/GN-0/status', json={'status': 'lost'}, headers=self.headers)
        self.assertEqual(invalid.status_code, 400)

    def test_bulk_update(self):
        customer = insert_user(self.db)
        insert_order(self.db, customer['_id'], status='pending', geonet_reference='GN-1')
        insert_order(self.db, customer['_id'], status='pending', geonet_reference='GN-2')

        response = self.client.post('/api/admin/orders/bulk-status-update', json={
            'orderIds': ['GN-1', 'GN-2', 'GN-3'], 'status': 'completed'
        }, headers=self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['msg'], 'Bulk update processed. Success: 2, Failed: 0, Not Found: 1')
        self.assertEqual(body['results']['notFound'], ['GN-3'])

    def test_bulk_update_requires_a_list(self):
        response = self.client.post('/api/admin/orders/bulk-status-update', json={
            'orderIds': 'GN-1', 'status': 'completed'
        }, headers=self.headers)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['msg'], 'Please provide an array of order IDs')

    def test_bulk_update_rejects_non_string_entries(self):
        customer = insert_user(self.db, balance=0.0)
        insert_order(self.db, customer['_id'], price=50.0, geonet_reference='GN-9')

        response = self.client.post('/api/admin/orders/bulk-status-update', json={
            'orderIds': [{'$ne': None}], 'status': 'failed'
        }, headers=self.headers)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.datapurchases.find_one({'geonetReference': 'GN-9'})['status'], 'processing')
        self.assertEqual(self.db.users.find_one({'_id': customer['_id']})['walletBalance'], 0.0)


class TestInventoryAndReportEndpoints(AdminApiTestCase):

    def test_toggle_web_then_read(self):
        response = self.client.put('/api/admin/inventory/YELLO/toggle-web', headers=self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertFalse(body['webInStock'])
        self.assertEqual(body['message'], 'YELLO web stock status updated to Out of Stock')

        listing = self.client.get('/api/admin/inventory', headers=self.headers).get_json()
        yello = next(item for item in listing['inventory'] if item['network'] == 'YELLO')
        self.assertFalse(yello['webInStock'])
        self.assertTrue(yello['apiInStock'])

    def test_dashboard_statistics(self):
        response = self.client.get('/api/admin/dashboard/statistics', headers=self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['userStats']['totalUsers'], 1)

    def test_verify_paystack_gateway_failure(self):
        from utils.paystack_utils import PaystackError

        self.db.transactions.insert_one({
            'userId': self.admin['_id'], 'type': 'deposit', 'amount': 5.0, 'status': 'pending',
            'gateway': 'paystack', 'reference': 'PS-5', 'createdAt': datetime.utcnow(),
        })
        self.paystack.verify.side_effect = PaystackError('Paystack API error: 503')

        response = self.client.get('/api/admin/verify-paystack/PS-5', headers=self.headers)

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.get_json()['msg'], 'Error verifying payment with Paystack')


if __name__ == '__main__':
    unittest.main()
