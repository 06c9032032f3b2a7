"""
Unit Tests for user administration
"""

import unittest
from datetime import datetime
from unittest import mock

from bson import ObjectId

from services.errors import Forbidden, InvalidInput, NotFound
from services.user_admin import UserAdminService
from mongo_doubles import insert_order, insert_user, make_mongo, snapshot_transaction_factory


class TestUserAdmin(unittest.TestCase):

    def setUp(self):
        self.db = make_mongo().db
        self.notifications = mock.Mock()
        self.service = UserAdminService(self.db, snapshot_transaction_factory(self.db), self.notifications)
        self.admin_id = ObjectId()

    def test_get_user_hides_password(self):
        user = insert_user(self.db)

        self.assertNotIn('password', self.service.get_user(str(user['_id'])))
        with self.assertRaises(NotFound):
            self.service.get_user('nope')

    def test_update_user_ignores_wallet_balance(self):
        user = insert_user(self.db, balance=12.0)

        updated = self.service.update_user(
            str(user['_id']),
            {'name': 'New Name', 'email': ' NEW@Example.com ', 'walletBalance': 9999}
        )

        self.assertEqual(updated['name'], 'New Name')
        self.assertEqual(updated['email'], 'new@example.com')
        self.assertEqual(updated['walletBalance'], 12.0)
        self.assertNotIn('password', updated)

    def test_update_user_validation(self):
        user = insert_user(self.db)

        with self.assertRaises(InvalidInput):
            self.service.update_user(str(user['_id']), {'email': 'not-an-email'})
        with self.assertRaises(InvalidInput):
            self.service.update_user(str(user['_id']), {'role': 'superuser'})
        with self.assertRaises(NotFound):
            self.service.update_user(str(ObjectId()), {'name': 'Ghost'})

    def test_toggle_disables_then_enables(self):
        user = insert_user(self.db)

        disabled = self.service.toggle_user_status(str(user['_id']), 'Chargeback', self.admin_id)

        self.assertTrue(disabled['isDisabled'])
        self.assertEqual(disabled['disableReason'], 'Chargeback')
        self.assertEqual(disabled['disabledBy'], self.admin_id)
        self.assertNotIn('password', disabled)
        self.assertTrue(self.db.users.find_one({'_id': user['_id']})['isDisabled'])

        enabled = self.service.toggle_user_status(str(user['_id']), None, self.admin_id)

        self.assertFalse(enabled['isDisabled'])
        self.assertIsNone(enabled['disableReason'])
        self.assertEqual(enabled['enabledBy'], self.admin_id)
        self.assertEqual(self.notifications.send_account_status.call_count, 2)

    def test_default_disable_reason(self):
        user = insert_user(self.db)

        disabled = self.service.toggle_user_status(str(user['_id']), '', self.admin_id)

        self.assertEqual(disabled['disableReason'], 'Administrative action')

    def test_delete_user_cascades(self):
        """
        Scenario: delete a customer with orders, transactions and referral bonuses
        Expected: all of their records go, other customers' records stay
        """
        user = insert_user(self.db)
        other = insert_user(self.db)
        insert_order(self.db, user['_id'])
        insert_order(self.db, user['_id'])
        insert_order(self.db, other['_id'])
        self.db.transactions.insert_many([
            {'userId': user['_id'], 'type': 'deposit', 'amount': 5.0, 'createdAt': datetime.utcnow()},
            {'userId': other['_id'], 'type': 'deposit', 'amount': 5.0, 'createdAt': datetime.utcnow()},
        ])
        self.db.referralbonuses.insert_many([
            {'userId': other['_id'], 'referredUserId': user['_id'], 'amount': 1.0},
            {'userId': other['_id'], 'referredUserId': ObjectId(), 'amount': 1.0},
        ])

        result = self.service.delete_user(str(user['_id']))

        self.assertEqual(result, {'transactionsDeleted': 1, 'ordersDeleted': 2})
        self.assertIsNone(self.db.users.find_one({'_id': user['_id']}))
        self.assertEqual(self.db.datapurchases.count_documents({}), 1)
        self.assertEqual(self.db.transactions.count_documents({}), 1)
        self.assertEqual(self.db.referralbonuses.count_documents({}), 1)

    def test_admin_accounts_cannot_be_deleted(self):
        admin = insert_user(self.db, role='admin')
        insert_order(self.db, admin['_id'])

        with self.assertRaises(Forbidden):
            self.service.delete_user(str(admin['_id']))

        self.assertIsNotNone(self.db.users.find_one({'_id': admin['_id']}))
        self.assertEqual(self.db.datapurchases.count_documents({}), 1)

    def test_delete_unknown_user(self):
        with self.assertRaises(NotFound):
            self.service.delete_user(str(ObjectId()))


if __name__ == '__main__':
    unittest.main()
