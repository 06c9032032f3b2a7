from flask import Blueprint, request, jsonify
import logging

from blueprints.utils.responses import error_response

logger = logging.getLogger(__name__)


def init_admin_transactions_blueprint(token_required, admin_required, serialize_doc,
                                      transaction_admin, reporting, expose_error_details=False):
    admin_transactions_bp = Blueprint('admin_transactions', __name__, url_prefix='/api/admin')

    @admin_transactions_bp.route('/transactions', methods=['GET'])
    @token_required
    @admin_required
    def get_transactions(current_user):
        """Filtered, paginated transactions with completed totals per type"""
        try:
            result = reporting.list_transactions(
                page=request.args.get('page', 1),
                limit=request.args.get('limit', 100),
                transaction_type=request.args.get('type', ''),
                status=request.args.get('status', ''),
                gateway=request.args.get('gateway', ''),
                start_date=request.args.get('startDate', ''),
                end_date=request.args.get('endDate', ''),
                search=request.args.get('search', ''),
                phone_number=request.args.get('phoneNumber', '')
            )
            return jsonify(serialize_doc(result))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    @admin_transactions_bp.route('/transactions/<transaction_id>', methods=['GET'])
    @token_required
    @admin_required
    def get_transaction(current_user, transaction_id):
        try:
            return jsonify(serialize_doc(transaction_admin.get_transaction(transaction_id)))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    @admin_transactions_bp.route('/verify-paystack/<reference>', methods=['GET'])
    @token_required
    @admin_required
    def verify_paystack(current_user, reference):
        try:
            return jsonify(serialize_doc(transaction_admin.verify_paystack(reference)))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    @admin_transactions_bp.route('/transactions/<transaction_id>/update-status', methods=['PUT'])
    @token_required
    @admin_required
    def update_transaction_status(current_user, transaction_id):
        try:
            data = request.get_json(silent=True) or {}
            transaction = transaction_admin.update_status(
                transaction_id,
                data.get('status'),
                data.get('adminNotes'),
                current_user['_id']
            )
            return jsonify({
                'msg': 'Transaction status updated successfully',
                'transaction': serialize_doc(transaction)
            })
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    return admin_transactions_bp
