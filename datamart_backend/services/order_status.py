"""
Order Status Service

Moves data-bundle orders through their lifecycle on behalf of an admin.
Setting an order to 'failed' refunds its price to the owner's wallet, once per
order; the refund, the status change and the history entry commit together.
"""

from datetime import datetime
import logging

from bson import ObjectId

from models import ModelValidator, to_object_id
from services.errors import InvalidInput, NotFound, Conflict
from utils.atomic_transactions import apply_balance_change, ConcurrentBalanceUpdate
from utils.money import round_amount

logger = logging.getLogger(__name__)

BATCH_ERROR = 'Batch transaction error'


class _OrderTransitionError(Exception):
    """Wraps a failure raised while one order inside a batch was being written."""

    def __init__(self, index, ref, cause):
        super().__init__(str(cause))
        self.index = index
        self.ref = ref
        self.cause = cause


class OrderStatusService:

    def __init__(self, db, transaction_factory, notifications=None, batch_size=10, expose_error_details=False):
        self.db = db
        self.transaction_factory = transaction_factory
        self.notifications = notifications
        self.batch_size = max(int(batch_size or 10), 1)
        self.expose_error_details = expose_error_details

    # ==================== LOOKUP ====================

    def find_order(self, order_ref, session=None):
        """Resolve an order by vendor reference first, then by its _id."""
        if isinstance(order_ref, ObjectId):
            return self.db.datapurchases.find_one({'_id': order_ref}, session=session)
        if not isinstance(order_ref, str) or not order_ref:
            return None
        order = self.db.datapurchases.find_one({'geonetReference': order_ref}, session=session)
        if order:
            return order
        oid = to_object_id(order_ref)
        if oid:
            return self.db.datapurchases.find_one({'_id': oid}, session=session)
        return None

    # ==================== TRANSITION ====================

    def _refund(self, order, previous_status, admin_id, session, bulk, now):
        user = self.db.users.find_one({'_id': order.get('userId')}, session=session)
        if not user:
            logger.warning(f"Refund skipped for order {order['_id']}: owner {order.get('userId')} no longer exists")
            return None

        amount = round_amount(order.get('price') or 0)
        if amount <= 0:
            logger.warning(f"Refund skipped for order {order['_id']}: price {order.get('price')!r} is not refundable")
            return None

        try:
            previous_balance, new_balance = apply_balance_change(self.db, user, amount, session=session)
        except ConcurrentBalanceUpdate as e:
            raise Conflict('Wallet balance was modified by another operation, please retry') from e

        metadata = {
            'orderId': order['_id'],
            'geonetReference': order.get('geonetReference'),
            'previousStatus': previous_status,
            'adminId': to_object_id(admin_id) or admin_id,
        }
        if bulk:
            metadata['bulkUpdate'] = True

        transaction = {
            'userId': user['_id'],
            'type': 'refund',
            'amount': amount,
            'status': 'completed',
            'reference': f"REFUND-{order['_id']}-{int(now.timestamp() * 1000)}",
            'gateway': 'wallet-refund',
            'metadata': metadata,
            'createdAt': now,
            'updatedAt': now,
        }
        self.db.transactions.insert_one(transaction, session=session)

        logger.info(f"Refunded {amount} to user {user['_id']} for order {order['_id']}")

        user['walletBalance'] = new_balance
        return {
            'amount': amount,
            'transactionId': transaction['_id'],
            'previousBalance': previous_balance,
            'newBalance': new_balance,
            'user': user,
        }

    def _transition(self, order, new_status, admin_id, session, bulk=False):
        """
        Write one status change inside the caller's transaction.

        Returns:
            tuple: (refund dict or None, timestamp of the change)
        """
        previous_status = order.get('status')
        now = datetime.utcnow()
        admin_ref = to_object_id(admin_id) or admin_id

        updates = {
            'status': new_status,
            'processedBy': admin_ref,
            'updatedAt': now,
        }

        refund = None
        if new_status == 'failed' and previous_status != 'failed' and not order.get('refundedAt'):
            refund = self._refund(order, previous_status, admin_id, session, bulk, now)
            if refund:
                updates['refundedAt'] = now
                updates['refundTransactionId'] = refund['transactionId']

        history_entry = {
            'status': new_status,
            'changedAt': now,
            'changedBy': admin_ref,
            'previousStatus': previous_status,
        }
        if bulk:
            history_entry['bulkUpdate'] = True

        result = self.db.datapurchases.update_one(
            {'_id': order['_id'], 'status': previous_status},
            {'$set': updates, '$push': {'statusHistory': history_entry}},
            session=session
        )
        if result.matched_count == 0:
            raise Conflict(f"Order {order['_id']} was modified by another operation, please retry")

        logger.info(f"Order {order['_id']} status change: {previous_status} -> {new_status} by admin {admin_id}")
        return refund, now

    def _notify_refund(self, refund, order):
        if refund and self.notifications:
            self.notifications.send_refund(refund['user'], order, refund['newBalance'])

    @staticmethod
    def _public_refund(refund):
        if not refund:
            return None
        return {
            'amount': refund['amount'],
            'transactionId': refund['transactionId'],
            'newBalance': refund['newBalance'],
        }

    # ==================== SINGLE ORDER ====================

    def set_status(self, order_ref, new_status, admin_id):
        """
        Set one order's status.

        Re-setting the current status is a no-op: no history entry, no refund.

        Returns:
            dict: id, geonetReference, status, previousStatus, updatedAt, refund, changed
        """
        if not ModelValidator.validate_order_status(new_status):
            raise InvalidInput('Invalid status value')

        refund = None
        with self.transaction_factory() as session:
            order = self.find_order(order_ref, session)
            if not order:
                raise NotFound(f'Order with ID/Reference {order_ref} not found')

            previous_status = order.get('status')
            changed = previous_status != new_status
            updated_at = order.get('updatedAt')
            if changed:
                refund, updated_at = self._transition(order, new_status, admin_id, session)

        if not changed:
            logger.info(f"Order {order['_id']} already {new_status}, nothing to do")
        self._notify_refund(refund, order)

        return {
            'id': order['_id'],
            'geonetReference': order.get('geonetReference'),
            'status': new_status,
            'previousStatus': previous_status,
            'updatedAt': updated_at,
            'refund': self._public_refund(refund),
            'changed': changed,
        }

    # ==================== BULK ====================

    def _failure_entry(self, ref, error):
        entry = {'id': ref, 'error': BATCH_ERROR}
        if self.expose_error_details and error is not None:
            entry['detail'] = str(error)
        return entry

    def _attempt_batch(self, refs, new_status, admin_id, staged, refunds):
        """
        Run one transaction over ``refs``, filling ``staged`` and ``refunds``.

        Staged results only count once the transaction has committed. A
        failure while writing a single order is raised as
        _OrderTransitionError carrying that order's position.
        """
        with self.transaction_factory() as session:
            for index, ref in enumerate(refs):
                order = self.find_order(ref, session)
                if not order:
                    staged['notFound'].append(ref)
                    continue

                previous_status = order.get('status')
                if previous_status == new_status:
                    staged['success'].append({
                        'id': order['_id'],
                        'geonetReference': order.get('geonetReference'),
                        'status': new_status,
                        'message': 'Status already set (no change needed)'
                    })
                    continue

                try:
                    refund, _ = self._transition(order, new_status, admin_id, session, bulk=True)
                except Exception as e:
                    raise _OrderTransitionError(index, ref, e) from e

                staged['success'].append({
                    'id': order['_id'],
                    'geonetReference': order.get('geonetReference'),
                    'previousStatus': previous_status,
                    'status': new_status
                })
                if refund:
                    refunds.append((refund, order))

    def _run_batch(self, batch, new_status, admin_id, results):
        pending = list(batch)

        while pending:
            staged = {'success': [], 'notFound': []}
            refunds = []
            try:
                self._attempt_batch(pending, new_status, admin_id, staged, refunds)
            except _OrderTransitionError as e:
                logger.error(f"Batch aborted by order {e.ref}: {e.cause}")
                results['failed'].append(self._failure_entry(e.ref, e.cause))
                pending = pending[:e.index] + pending[e.index + 1:]
                continue
            except Exception as e:
                logger.error(f"Error processing batch: {str(e)}")
                not_found = staged['notFound']
                results['notFound'].extend(not_found)
                for ref in pending:
                    if ref not in not_found:
                        results['failed'].append(self._failure_entry(ref, e))
                return

            results['success'].extend(staged['success'])
            results['notFound'].extend(staged['notFound'])
            for refund, order in refunds:
                self._notify_refund(refund, order)
            return

    def bulk_set_status(self, order_refs, new_status, admin_id):
        """
        Set the status of many orders, committing them in batches.

        Batches are independent: a batch that committed stays committed when a
        later one fails. Inside a batch, an order whose write fails is reported
        as failed and the batch is re-run without it.

        Returns:
            dict: {'success': [...], 'failed': [...], 'notFound': [...]}
        """
        if not isinstance(order_refs, list) or not order_refs:
            raise InvalidInput('Please provide an array of order IDs')
        if not all(isinstance(ref, str) and ref for ref in order_refs):
            raise InvalidInput('Please provide an array of order IDs')
        if not ModelValidator.validate_order_status(new_status):
            raise InvalidInput('Invalid status value')

        results = {'success': [], 'failed': [], 'notFound': []}

        for start in range(0, len(order_refs), self.batch_size):
            batch = order_refs[start:start + self.batch_size]
            self._run_batch(batch, new_status, admin_id, results)

        logger.info(
            f"Bulk status update to {new_status} by admin {admin_id}: "
            f"{len(results['success'])} success, {len(results['failed'])} failed, "
            f"{len(results['notFound'])} not found"
        )
        return results


def bulk_summary_message(results):
    return (
        f"Bulk update processed. Success: {len(results['success'])}, "
        f"Failed: {len(results['failed'])}, Not Found: {len(results['notFound'])}"
    )
