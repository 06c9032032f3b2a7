"""
Transaction Administration Service

Single-transaction lookups, Paystack re-verification and manual status
overrides. Amount, type and owner of a transaction are never touched here.
"""

from datetime import datetime
import logging

from models import ModelValidator, to_object_id
from services.errors import InvalidInput, NotFound, GatewayError
from utils.paystack_utils import PaystackError

logger = logging.getLogger(__name__)

OWNER_FIELDS = {'name': 1, 'email': 1, 'phoneNumber': 1}


class TransactionAdminService:

    def __init__(self, db, paystack_client=None):
        self.db = db
        self.paystack = paystack_client

    def _populate_owner(self, transaction):
        owner_id = transaction.get('userId')
        if owner_id:
            owner = self.db.users.find_one({'_id': owner_id}, OWNER_FIELDS)
            if owner:
                transaction['userId'] = owner
        return transaction

    def get_transaction(self, transaction_id):
        oid = to_object_id(transaction_id)
        transaction = self.db.transactions.find_one({'_id': oid}) if oid else None
        if not transaction:
            raise NotFound('Transaction not found')
        return self._populate_owner(transaction)

    def verify_paystack(self, reference):
        """
        Re-check a Paystack deposit and align the stored status with the
        gateway's answer.

        Returns:
            dict: transaction, paystackVerification, verified, message
        """
        transaction = self.db.transactions.find_one({'reference': reference})
        if not transaction:
            raise NotFound('Transaction reference not found in database')

        if transaction.get('gateway') != 'paystack':
            raise InvalidInput(
                'This transaction was not processed through Paystack',
                transaction=self._populate_owner(transaction)
            )

        try:
            verification = self.paystack.verify(reference)
        except PaystackError as e:
            logger.error(f"Paystack verification error for {reference}: {str(e)}")
            raise GatewayError(
                'Error verifying payment with Paystack',
                error=str(e),
                transaction=self._populate_owner(transaction)
            ) from e

        verified = verification['status'] == 'success'
        target_status = 'completed' if verified else 'failed'

        if transaction.get('status') != target_status:
            metadata = dict(transaction.get('metadata') or {})
            metadata['paystackVerification'] = verification['raw']
            now = datetime.utcnow()
            self.db.transactions.update_one(
                {'_id': transaction['_id']},
                {'$set': {'status': target_status, 'metadata': metadata, 'updatedAt': now}}
            )
            transaction.update({'status': target_status, 'metadata': metadata, 'updatedAt': now})
            logger.info(f"Transaction {reference} marked {target_status} after Paystack verification")

        return {
            'transaction': self._populate_owner(transaction),
            'paystackVerification': verification['raw'],
            'verified': verified,
            'message': 'Payment was successfully verified on Paystack' if verified
            else 'Payment verification failed on Paystack',
        }

    def update_status(self, transaction_id, status, admin_notes, admin_id):
        """Manual status override, optionally annotated with admin notes."""
        if not ModelValidator.validate_transaction_status(status):
            raise InvalidInput('Invalid status value')

        oid = to_object_id(transaction_id)
        transaction = self.db.transactions.find_one({'_id': oid}) if oid else None
        if not transaction:
            raise NotFound('Transaction not found')

        now = datetime.utcnow()
        updates = {'status': status, 'updatedAt': now}

        if admin_notes:
            metadata = dict(transaction.get('metadata') or {})
            metadata.update({
                'adminNotes': admin_notes,
                'updatedBy': to_object_id(admin_id) or admin_id,
                'updateDate': now,
            })
            updates['metadata'] = metadata

        self.db.transactions.update_one({'_id': oid}, {'$set': updates})
        transaction.update(updates)

        logger.info(f"Transaction {oid} status set to {status} by admin {admin_id}")
        return transaction
