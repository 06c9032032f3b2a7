"""
User Administration Service

Account lookups, profile edits, enable/disable and cascade deletion for the
admin console. Wallet balances are deliberately absent from the editable
fields: they only move through WalletLedger and order refunds.
"""

from datetime import datetime
import logging

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from models import ModelValidator, to_object_id
from services.errors import InvalidInput, NotFound, Forbidden, Conflict

logger = logging.getLogger(__name__)

EDITABLE_USER_FIELDS = ('name', 'email', 'phoneNumber', 'role', 'referralCode')

PUBLIC_PROJECTION = {'password': 0}


class UserAdminService:

    def __init__(self, db, transaction_factory, notifications=None):
        self.db = db
        self.transaction_factory = transaction_factory
        self.notifications = notifications

    def get_user(self, user_id):
        oid = to_object_id(user_id)
        user = self.db.users.find_one({'_id': oid}, PUBLIC_PROJECTION) if oid else None
        if not user:
            raise NotFound('User not found')
        return user

    def update_user(self, user_id, fields):
        """
        Update profile fields. Only EDITABLE_USER_FIELDS are applied; empty
        values are ignored.
        """
        oid = to_object_id(user_id)
        if not oid:
            raise NotFound('User not found')

        updates = {}
        for key in EDITABLE_USER_FIELDS:
            value = (fields or {}).get(key)
            if value:
                updates[key] = value

        if 'email' in updates:
            updates['email'] = str(updates['email']).strip().lower()
            if not ModelValidator.validate_email(updates['email']):
                raise InvalidInput('Invalid email address')
        if 'role' in updates and not ModelValidator.validate_user_role(updates['role']):
            raise InvalidInput('Invalid role')

        if not updates:
            return self.get_user(user_id)

        updates['updatedAt'] = datetime.utcnow()

        try:
            user = self.db.users.find_one_and_update(
                {'_id': oid},
                {'$set': updates},
                projection=PUBLIC_PROJECTION,
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise Conflict('Email address is already in use') from e

        if not user:
            raise NotFound('User not found')

        logger.info(f"User {oid} updated: {sorted(k for k in updates if k != 'updatedAt')}")
        return user

    def toggle_user_status(self, user_id, disable_reason, admin_id):
        """
        Disable an enabled account or re-enable a disabled one, then tell the
        user by SMS.
        """
        oid = to_object_id(user_id)
        user = self.db.users.find_one({'_id': oid}) if oid else None
        if not user:
            raise NotFound('User not found')

        now = datetime.utcnow()
        admin_ref = to_object_id(admin_id) or admin_id
        disabling = not user.get('isDisabled', False)

        if disabling:
            updates = {
                'isDisabled': True,
                'disableReason': disable_reason or 'Administrative action',
                'disabledAt': now,
                'disabledBy': admin_ref,
                'updatedAt': now,
            }
        else:
            updates = {
                'isDisabled': False,
                'disableReason': None,
                'disabledAt': None,
                'enabledAt': now,
                'enabledBy': admin_ref,
                'updatedAt': now,
            }

        self.db.users.update_one({'_id': oid}, {'$set': updates})
        user.update(updates)
        user.pop('password', None)

        logger.info(f"User {oid} {'disabled' if disabling else 're-enabled'} by admin {admin_id}")

        if self.notifications:
            self.notifications.send_account_status(user)

        return user

    def delete_user(self, user_id):
        """Delete a user with their transactions, orders and referral bonuses."""
        oid = to_object_id(user_id)
        if not oid:
            raise NotFound('User not found')

        with self.transaction_factory() as session:
            user = self.db.users.find_one({'_id': oid}, session=session)
            if not user:
                raise NotFound('User not found')
            if user.get('role') == 'admin':
                raise Forbidden('Admin accounts cannot be deleted')

            transactions = self.db.transactions.delete_many({'userId': oid}, session=session)
            orders = self.db.datapurchases.delete_many({'userId': oid}, session=session)
            self.db.referralbonuses.delete_many(
                {'$or': [{'userId': oid}, {'referredUserId': oid}]},
                session=session
            )
            self.db.users.delete_one({'_id': oid}, session=session)

        logger.info(
            f"User {oid} deleted with {transactions.deleted_count} transactions "
            f"and {orders.deleted_count} orders"
        )
        return {
            'transactionsDeleted': transactions.deleted_count,
            'ordersDeleted': orders.deleted_count,
        }
