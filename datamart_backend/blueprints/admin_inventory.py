from flask import Blueprint, jsonify
import logging

from blueprints.utils.responses import error_response
from models import NETWORKS

logger = logging.getLogger(__name__)


def init_admin_inventory_blueprint(token_required, admin_required, serialize_doc,
                                   inventory, expose_error_details=False):
    admin_inventory_bp = Blueprint('admin_inventory', __name__, url_prefix='/api/admin')

    def failed(e, message):
        return error_response(e, serialize_doc, expose_error_details, message)

    # ===== READS =====

    @admin_inventory_bp.route('/inventory', methods=['GET'])
    @token_required
    @admin_required
    def get_inventory(current_user):
        try:
            items = inventory.get_inventory()
            return jsonify({
                'status': 'success',
                'inventory': [serialize_doc(item) for item in items],
                'totalNetworks': len(NETWORKS)
            })
        except Exception as e:
            return failed(e, 'Failed to fetch inventory')

    @admin_inventory_bp.route('/inventory/<network>', methods=['GET'])
    @token_required
    @admin_required
    def get_network_inventory(current_user, network):
        try:
            return jsonify(serialize_doc(inventory.get_network_inventory(network)))
        except Exception as e:
            return failed(e, 'Failed to fetch inventory')

    # ===== PER-CHANNEL TOGGLES =====

    @admin_inventory_bp.route('/inventory/<network>/toggle-web', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_web_stock(current_user, network):
        try:
            result = inventory.toggle_stock(network, 'web', current_user['_id'])
            state = 'In Stock' if result['webInStock'] else 'Out of Stock'
            return jsonify(serialize_doc({
                'status': 'success',
                'message': f'{network} web stock status updated to {state}',
                **result
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle web stock status')

    @admin_inventory_bp.route('/inventory/<network>/toggle-api', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_api_stock(current_user, network):
        try:
            result = inventory.toggle_stock(network, 'api', current_user['_id'])
            state = 'In Stock' if result['apiInStock'] else 'Out of Stock'
            return jsonify(serialize_doc({
                'status': 'success',
                'message': f'{network} API stock status updated to {state}',
                **result
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle API stock status')

    @admin_inventory_bp.route('/inventory/<network>/toggle-geonettech-web', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_web_vendor(current_user, network):
        try:
            result = inventory.toggle_vendor_bypass(network, 'web', current_user['_id'])
            state = 'disabled' if result['webSkipGeonettech'] else 'enabled'
            return jsonify(serialize_doc({
                'status': 'success',
                'message': f'{network} web Geonettech API {state}',
                **result
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle web Geonettech status')

    @admin_inventory_bp.route('/inventory/<network>/toggle-geonettech-api', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_api_vendor(current_user, network):
        try:
            result = inventory.toggle_vendor_bypass(network, 'api', current_user['_id'])
            state = 'disabled' if result['apiSkipGeonettech'] else 'enabled'
            return jsonify(serialize_doc({
                'status': 'success',
                'message': f'{network} API Geonettech {state}',
                **result
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle API Geonettech status')

    # ===== LEGACY (BOTH CHANNELS) =====

    @admin_inventory_bp.route('/inventory/<network>/toggle', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_stock(current_user, network):
        try:
            item = inventory.toggle_stock_all(network)
            state = 'in stock' if item['inStock'] else 'out of stock'
            return jsonify(serialize_doc({
                'network': item['network'],
                'inStock': item['inStock'],
                'webInStock': item['webInStock'],
                'apiInStock': item['apiInStock'],
                'skipGeonettech': item['skipGeonettech'] or False,
                'message': f'{network} is now {state} for both web and API'
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle stock status')

    @admin_inventory_bp.route('/inventory/<network>/toggle-geonettech', methods=['PUT'])
    @token_required
    @admin_required
    def toggle_vendor(current_user, network):
        try:
            item = inventory.toggle_vendor_bypass_all(network)
            state = 'disabled' if item['skipGeonettech'] else 'enabled'
            return jsonify(serialize_doc({
                'network': item['network'],
                'inStock': item['inStock'],
                'skipGeonettech': item['skipGeonettech'],
                'webSkipGeonettech': item['webSkipGeonettech'],
                'apiSkipGeonettech': item['apiSkipGeonettech'],
                'message': f'{network} Geonettech API is now {state} for both web and API'
            }))
        except Exception as e:
            return failed(e, 'Failed to toggle Geonettech status')

    @admin_inventory_bp.route('/inventory/migrate', methods=['POST'])
    @token_required
    @admin_required
    def migrate_inventory(current_user):
        try:
            counts = inventory.migrate()
            return jsonify({
                'status': 'success',
                'message': (
                    f"Migration completed. {counts['migratedRecords']} out of "
                    f"{counts['totalRecords']} inventory records updated."
                ),
                **counts
            })
        except Exception as e:
            return failed(e, 'Failed to migrate inventory')

    return admin_inventory_bp
