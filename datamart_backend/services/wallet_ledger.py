"""
Wallet Ledger Service

Admin credits and debits against a user's wallet. The balance change and its
ledger entry are written in one MongoDB transaction; the SMS goes out only
after the commit.
"""

from datetime import datetime
import logging

from models import to_object_id
from services.errors import InvalidInput, InsufficientBalance, NotFound, Conflict
from utils.atomic_transactions import apply_balance_change, generate_reference, ConcurrentBalanceUpdate
from utils.money import parse_positive_amount

logger = logging.getLogger(__name__)


class WalletLedger:

    def __init__(self, db, transaction_factory, notifications=None):
        self.db = db
        self.transaction_factory = transaction_factory
        self.notifications = notifications

    def _load_user(self, user_id, session):
        oid = to_object_id(user_id)
        user = self.db.users.find_one({'_id': oid}, session=session) if oid else None
        if not user:
            raise NotFound('User not found')
        return user

    def _move_balance(self, user, delta, session):
        try:
            return apply_balance_change(self.db, user, delta, session=session)
        except ConcurrentBalanceUpdate as e:
            raise Conflict('Wallet balance was modified by another operation, please retry') from e

    def credit(self, user_id, amount, admin_id):
        """
        Add ``amount`` to the user's wallet and record a completed deposit.

        Returns:
            dict: user, previousBalance, currentBalance, transaction
        """
        value = parse_positive_amount(amount)
        if value is None:
            raise InvalidInput('Please provide a valid amount')
        if not to_object_id(user_id):
            raise NotFound('User not found')

        with self.transaction_factory() as session:
            user = self._load_user(user_id, session)
            previous_balance, new_balance = self._move_balance(user, value, session)

            transaction = {
                'userId': user['_id'],
                'type': 'deposit',
                'amount': value,
                'status': 'completed',
                'reference': generate_reference('ADMIN'),
                'gateway': 'admin-deposit',
                'metadata': {
                    'adminId': to_object_id(admin_id) or admin_id,
                    'previousBalance': previous_balance,
                    'newBalance': new_balance,
                },
                'createdAt': datetime.utcnow(),
                'updatedAt': datetime.utcnow(),
            }
            self.db.transactions.insert_one(transaction, session=session)

        user['walletBalance'] = new_balance
        logger.info(f"Admin {admin_id} credited {value} to user {user['_id']} ({previous_balance} -> {new_balance})")

        if self.notifications:
            self.notifications.send_credit(user, value, new_balance)

        return {
            'user': user,
            'previousBalance': previous_balance,
            'currentBalance': new_balance,
            'transaction': transaction,
        }

    def debit(self, user_id, amount, reason=None, admin_id=None):
        """
        Remove ``amount`` from the user's wallet and record a completed withdrawal.

        Raises InsufficientBalance before any write when the wallet cannot
        cover the deduction.
        """
        value = parse_positive_amount(amount)
        if value is None:
            raise InvalidInput('Please provide a valid amount')
        if not to_object_id(user_id):
            raise NotFound('User not found')

        with self.transaction_factory() as session:
            user = self._load_user(user_id, session)
            current_balance = float(user.get('walletBalance', 0) or 0)

            if current_balance < value:
                raise InsufficientBalance(current_balance, value)

            previous_balance, new_balance = self._move_balance(user, -value, session)

            transaction = {
                'userId': user['_id'],
                'type': 'withdrawal',
                'amount': value,
                'status': 'completed',
                'reference': generate_reference('ADMIN-DEDUCT'),
                'gateway': 'admin-deduction',
                'metadata': {
                    'reason': reason or 'Administrative deduction',
                    'adminId': to_object_id(admin_id) or admin_id,
                    'previousBalance': previous_balance,
                },
                'createdAt': datetime.utcnow(),
                'updatedAt': datetime.utcnow(),
            }
            self.db.transactions.insert_one(transaction, session=session)

        user['walletBalance'] = new_balance
        logger.info(f"Admin {admin_id} deducted {value} from user {user['_id']} ({previous_balance} -> {new_balance})")

        if self.notifications:
            self.notifications.send_debit(user, value, new_balance, reason)

        return {
            'user': user,
            'previousBalance': previous_balance,
            'currentBalance': new_balance,
            'transaction': transaction,
        }
