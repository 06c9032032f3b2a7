from flask import Blueprint, request, jsonify
import logging

from blueprints.utils.responses import error_response
from services.errors import InvalidInput
from services.order_status import bulk_summary_message

logger = logging.getLogger(__name__)


def init_admin_orders_blueprint(token_required, admin_required, serialize_doc,
                                order_status, reporting, expose_error_details=False):
    admin_orders_bp = Blueprint('admin_orders', __name__, url_prefix='/api/admin')

    @admin_orders_bp.route('/orders', methods=['GET'])
    @token_required
    @admin_required
    def get_orders(current_user):
        """Filtered order list; userPhone searches by the owner's phone number"""
        try:
            result = reporting.list_orders(
                page=request.args.get('page', 1),
                limit=request.args.get('limit', 100),
                status=request.args.get('status', ''),
                network=request.args.get('network', ''),
                start_date=request.args.get('startDate', ''),
                end_date=request.args.get('endDate', ''),
                phone_number=request.args.get('phoneNumber', ''),
                user_phone=request.args.get('userPhone', '')
            )
            return jsonify(serialize_doc(result))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    @admin_orders_bp.route('/orders/<order_ref>/status', methods=['PUT'])
    @token_required
    @admin_required
    def update_order_status(current_user, order_ref):
        try:
            data = request.get_json(silent=True) or {}
            result = order_status.set_status(order_ref, data.get('status'), current_user['_id'])
            return jsonify({
                'success': True,
                'msg': 'Order status updated successfully' if result['changed']
                else 'Status already set (no change needed)',
                'order': serialize_doc({
                    'id': result['id'],
                    'geonetReference': result['geonetReference'],
                    'status': result['status'],
                    'previousStatus': result['previousStatus'],
                    'updatedAt': result['updatedAt'],
                    'refund': result['refund'],
                })
            })
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details,
                                  'Server Error while updating order status')

    @admin_orders_bp.route('/orders/bulk-status-update', methods=['POST'])
    @token_required
    @admin_required
    def bulk_update_order_status(current_user):
        try:
            data = request.get_json(silent=True) or {}
            order_ids = data.get('orderIds')
            if not isinstance(order_ids, list) or not order_ids:
                raise InvalidInput('Please provide an array of order IDs')

            results = order_status.bulk_set_status(order_ids, data.get('status'), current_user['_id'])
            return jsonify({
                'msg': bulk_summary_message(results),
                'results': serialize_doc(results)
            })
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details,
                                  'Server Error during bulk update')

    return admin_orders_bp
