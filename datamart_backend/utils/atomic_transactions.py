"""
Atomic Transaction Utilities for Wallet and Order Operations

Every mutation that touches a wallet balance together with a ledger entry or
an order status runs inside one MongoDB multi-document transaction, so the
balance and its ledger record commit together or not at all.
"""

from contextlib import contextmanager
from datetime import datetime
from bson import ObjectId
import logging

from utils.money import add_amounts

logger = logging.getLogger(__name__)


@contextmanager
def mongo_transaction(mongo):
    """
    Open a session on the client behind ``mongo`` and run the block inside a
    transaction.

    Yields the session; pass it as ``session=`` to every read and write that
    belongs to the unit of work. Leaving the block normally commits, an
    exception aborts and propagates.
    """
    with mongo.cx.start_session() as session:
        with session.start_transaction():
            yield session


def transaction_factory_for(mongo):
    """Return a zero-argument factory producing ``mongo_transaction`` contexts."""
    def factory():
        return mongo_transaction(mongo)
    return factory


class ConcurrentBalanceUpdate(Exception):
    """The guarded balance write matched no document."""


def apply_balance_change(db, user, delta, session=None):
    """
    Move ``user``'s walletBalance by ``delta`` (positive or negative).

    The update is guarded on the balance that was read, so a concurrent writer
    that moved it first makes this call raise ConcurrentBalanceUpdate instead
    of silently overwriting their change.

    Returns:
        tuple: (previous_balance, new_balance)
    """
    stored_balance = user.get('walletBalance')
    previous_balance = float(stored_balance or 0)
    new_balance = add_amounts(previous_balance, delta)

    # None matches a missing or null walletBalance
    result = db.users.update_one(
        {'_id': user['_id'], 'walletBalance': stored_balance},
        {'$set': {'walletBalance': new_balance, 'updatedAt': datetime.utcnow()}},
        session=session
    )

    if result.matched_count == 0:
        logger.warning(f"Balance for user {user['_id']} changed during update; aborting")
        raise ConcurrentBalanceUpdate(f"Wallet balance for user {user['_id']} changed concurrently")

    return previous_balance, new_balance


def generate_reference(prefix, suffix=None):
    """Build a unique reference such as ADMIN-1718000000000-5f1c9e2a."""
    millis = int(datetime.utcnow().timestamp() * 1000)
    tail = suffix if suffix is not None else str(ObjectId())[-8:]
    return f"{prefix}-{millis}-{tail}"
