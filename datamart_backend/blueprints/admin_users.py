from flask import Blueprint, request, jsonify
import logging

from blueprints.utils.responses import error_response

logger = logging.getLogger(__name__)


def init_admin_users_blueprint(token_required, admin_required, serialize_doc,
                               user_admin, wallet_ledger, reporting, expose_error_details=False):
    admin_users_bp = Blueprint('admin_users', __name__, url_prefix='/api/admin')

    def failed(e, message='Server Error'):
        return error_response(e, serialize_doc, expose_error_details, message)

    @admin_users_bp.route('/users', methods=['GET'])
    @token_required
    @admin_required
    def get_users(current_user):
        """Paginated user list with search and sorting (password never returned)"""
        try:
            result = reporting.list_users(
                page=request.args.get('page', 1),
                limit=request.args.get('limit', 10),
                search=request.args.get('search', ''),
                sort_by=request.args.get('sortBy', 'walletBalance'),
                sort_order=request.args.get('sortOrder', 'desc')
            )
            result['users'] = [serialize_doc(u) for u in result['users']]
            return jsonify(result)
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>', methods=['GET'])
    @token_required
    @admin_required
    def get_user(current_user, user_id):
        try:
            return jsonify(serialize_doc(user_admin.get_user(user_id)))
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>', methods=['PUT'])
    @token_required
    @admin_required
    def update_user(current_user, user_id):
        """Update profile fields. walletBalance is ignored here; use add-money/deduct-money."""
        try:
            data = request.get_json(silent=True) or {}
            if 'walletBalance' in data:
                logger.warning(f"Admin {current_user['_id']} tried to set walletBalance of {user_id} directly; ignored")
            user = user_admin.update_user(user_id, data)
            return jsonify(serialize_doc(user))
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>', methods=['DELETE'])
    @token_required
    @admin_required
    def delete_user(current_user, user_id):
        try:
            counts = user_admin.delete_user(user_id)
            logger.info(f"Admin {current_user['_id']} deleted user {user_id}")
            return jsonify({'msg': 'User and related data deleted', **counts})
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>/add-money', methods=['PUT'])
    @token_required
    @admin_required
    def add_money(current_user, user_id):
        try:
            data = request.get_json(silent=True) or {}
            result = wallet_ledger.credit(user_id, data.get('amount'), current_user['_id'])
            return jsonify({
                'msg': f"Successfully added {result['transaction']['amount']} to {result['user'].get('name')}'s wallet",
                'currentBalance': result['currentBalance'],
                'previousBalance': result['previousBalance'],
                'transaction': serialize_doc(result['transaction'])
            })
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>/deduct-money', methods=['PUT'])
    @token_required
    @admin_required
    def deduct_money(current_user, user_id):
        try:
            data = request.get_json(silent=True) or {}
            result = wallet_ledger.debit(user_id, data.get('amount'), data.get('reason'), current_user['_id'])
            return jsonify({
                'msg': f"Successfully deducted {result['transaction']['amount']} from {result['user'].get('name')}'s wallet",
                'currentBalance': result['currentBalance'],
                'previousBalance': result['previousBalance'],
                'transaction': serialize_doc(result['transaction'])
            })
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/users/<user_id>/toggle-status', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_status(current_user, user_id):
        try:
            data = request.get_json(silent=True) or {}
            user = user_admin.toggle_user_status(user_id, data.get('disableReason'), current_user['_id'])
            return jsonify({
                'success': True,
                'message': 'User account has been disabled' if user.get('isDisabled')
                else 'User account has been enabled',
                'user': serialize_doc({
                    '_id': user['_id'],
                    'name': user.get('name'),
                    'email': user.get('email'),
                    'phoneNumber': user.get('phoneNumber'),
                    'isDisabled': user.get('isDisabled'),
                    'disableReason': user.get('disableReason'),
                    'disabledAt': user.get('disabledAt'),
                    'disabledBy': current_user.get('name') if user.get('isDisabled') else None,
                })
            })
        except Exception as e:
            return failed(e)

    @admin_users_bp.route('/user-orders/<user_id>', methods=['GET'])
    @token_required
    @admin_required
    def get_user_orders(current_user, user_id):
        try:
            result = reporting.user_orders(
                user_id,
                page=request.args.get('page', 1),
                limit=request.args.get('limit', 100)
            )
            result['orders'] = [serialize_doc(o) for o in result['orders']]
            return jsonify(result)
        except Exception as e:
            return failed(e, 'Error fetching user orders')

    return admin_users_bp
