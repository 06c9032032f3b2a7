from flask import Blueprint, request, jsonify
import logging

from blueprints.utils.responses import error_response

logger = logging.getLogger(__name__)

SUMMARY_FILTERS = (
    'search', 'phoneNumber', 'email', 'reference', 'gateway',
    'transactionType', 'transactionStatus', 'userId'
)


def init_admin_reports_blueprint(token_required, admin_required, serialize_doc,
                                 reporting, expose_error_details=False):
    admin_reports_bp = Blueprint('admin_reports', __name__, url_prefix='/api/admin')

    @admin_reports_bp.route('/daily-summary', methods=['GET'])
    @token_required
    @admin_required
    def daily_summary(current_user):
        try:
            filters = {key: request.args.get(key, '') for key in SUMMARY_FILTERS}
            result = reporting.daily_summary(
                date=request.args.get('date') or None,
                transaction_page=request.args.get('transactionPage', 1),
                transaction_limit=request.args.get('transactionLimit', 20),
                **filters
            )
            return jsonify(serialize_doc(result))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details,
                                  'Error fetching enhanced dashboard data')

    @admin_reports_bp.route('/dashboard/statistics', methods=['GET'])
    @token_required
    @admin_required
    def dashboard_statistics(current_user):
        try:
            return jsonify(serialize_doc(reporting.dashboard_statistics()))
        except Exception as e:
            return error_response(e, serialize_doc, expose_error_details)

    return admin_reports_bp
