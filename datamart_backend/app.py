from flask import Flask, request, jsonify, g
from flask_cors import CORS
from flask_pymongo import PyMongo
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from datetime import datetime
from functools import wraps
from bson import ObjectId
import logging
import jwt

from config.environment import AppConfig

# Import blueprints
from blueprints.auth import init_auth_blueprint
from blueprints.admin_users import init_admin_users_blueprint
from blueprints.admin_orders import init_admin_orders_blueprint
from blueprints.admin_inventory import init_admin_inventory_blueprint
from blueprints.admin_transactions import init_admin_transactions_blueprint
from blueprints.admin_reports import init_admin_reports_blueprint
from blueprints.utils.api_logging_middleware import setup_api_logging

# Import database models
from models import DatabaseInitializer

# Import services
from services.wallet_ledger import WalletLedger
from services.order_status import OrderStatusService
from services.inventory_service import InventoryService
from services.user_admin import UserAdminService
from services.transaction_admin import TransactionAdminService
from services.reporting import ReportingService
from utils.atomic_transactions import transaction_factory_for
from utils.messaging_service import MessagingService, NotificationService
from utils.paystack_utils import PaystackClient

logger = logging.getLogger(__name__)


# Helper function to convert ObjectId and datetime values for JSON
def serialize_doc(doc):
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat() + 'Z'
    if not isinstance(doc, dict):
        return doc

    # Make a copy to avoid modifying the original
    doc = doc.copy()

    # Handle _id field
    if '_id' in doc:
        doc['id'] = doc.pop('_id')

    for key, value in list(doc.items()):
        doc[key] = serialize_doc(value)

    return doc


def create_app(config=None, mongo=None, messaging_service=None, paystack_client=None, transaction_factory=None):
    """
    Build the Flask application.

    Collaborators are created from ``config`` unless supplied; tests pass a
    mongomock-backed ``mongo`` and a snapshot ``transaction_factory``.
    """
    config = config or AppConfig.from_env()

    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.SECRET_KEY
    app.config['MONGO_URI'] = config.MONGO_URI
    app.config['JWT_EXPIRATION_DELTA'] = config.jwt_expiration_delta
    app.config['TESTING'] = config.TESTING
    app.config['APP_CONFIG'] = config

    # Initialize extensions
    CORS(app, origins=config.CORS_ORIGINS)
    if mongo is None:
        mongo = PyMongo(app)

    Limiter(
        app=app,
        key_func=get_remote_address,
        default_limits=config.RATE_LIMITS,
        storage_uri="memory://",
    )

    setup_api_logging(app)

    # Database collections and indexes
    try:
        db_results = DatabaseInitializer(mongo.db).initialize_collections()
        if db_results['created']:
            logger.info(f"Created {len(db_results['created'])} new collections")
        if db_results['errors']:
            logger.warning(f"{len(db_results['errors'])} errors during database initialization")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")

    # Collaborators
    messaging_service = messaging_service or MessagingService(config)
    paystack_client = paystack_client or PaystackClient(config)
    transaction_factory = transaction_factory or transaction_factory_for(mongo)
    notifications = NotificationService(messaging_service)

    wallet_ledger = WalletLedger(mongo.db, transaction_factory, notifications)
    order_status = OrderStatusService(
        mongo.db,
        transaction_factory,
        notifications,
        batch_size=config.BULK_BATCH_SIZE,
        expose_error_details=config.EXPOSE_ERROR_DETAILS
    )
    inventory = InventoryService(mongo.db)
    user_admin = UserAdminService(mongo.db, transaction_factory, notifications)
    transaction_admin = TransactionAdminService(mongo.db, paystack_client)
    reporting = ReportingService(mongo.db)

    # JWT token decorator
    def token_required(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            token = request.headers.get('Authorization')
            if not token:
                return jsonify({'success': False, 'message': 'Token is missing'}), 401

            try:
                if token.startswith('Bearer '):
                    token = token[7:]
                data = jwt.decode(token, config.SECRET_KEY, algorithms=['HS256'])
            except jwt.ExpiredSignatureError:
                return jsonify({'success': False, 'message': 'Token has expired'}), 401
            except jwt.InvalidTokenError:
                return jsonify({'success': False, 'message': 'Invalid token'}), 401

            # Validate user_id exists in token
            user_id = data.get('user_id')
            if not user_id or not ObjectId.is_valid(str(user_id)):
                return jsonify({'success': False, 'message': 'Invalid token format'}), 401

            current_user = mongo.db.users.find_one({'_id': ObjectId(str(user_id))})
            if not current_user:
                return jsonify({'success': False, 'message': 'User not found'}), 401
            if current_user.get('isDisabled'):
                return jsonify({'success': False, 'message': 'Your account has been disabled'}), 403

            # Store user ID in g for API logging middleware
            g.current_user_id = current_user['_id']

            return f(current_user, *args, **kwargs)
        return decorated

    # Admin required decorator
    def admin_required(f):
        @wraps(f)
        def decorated(current_user, *args, **kwargs):
            if current_user.get('role') != 'admin':
                logger.warning(f"Non-admin user {current_user['_id']} denied access to {request.path}")
                return jsonify({'success': False, 'message': 'Admin access required'}), 403
            return f(current_user, *args, **kwargs)
        return decorated

    # Register blueprints
    expose = config.EXPOSE_ERROR_DETAILS
    app.register_blueprint(init_auth_blueprint(mongo, config))
    app.register_blueprint(init_admin_users_blueprint(
        token_required, admin_required, serialize_doc, user_admin, wallet_ledger, reporting, expose
    ))
    app.register_blueprint(init_admin_orders_blueprint(
        token_required, admin_required, serialize_doc, order_status, reporting, expose
    ))
    app.register_blueprint(init_admin_inventory_blueprint(
        token_required, admin_required, serialize_doc, inventory, expose
    ))
    app.register_blueprint(init_admin_transactions_blueprint(
        token_required, admin_required, serialize_doc, transaction_admin, reporting, expose
    ))
    app.register_blueprint(init_admin_reports_blueprint(
        token_required, admin_required, serialize_doc, reporting, expose
    ))

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({
            'success': True,
            'message': 'DataMart Backend is running',
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'version': '1.0.0'
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'message': 'Endpoint not found',
            'error': 'The requested resource was not found on this server.'
        }), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({
            'success': False,
            'message': 'Internal server error',
            'error': 'An unexpected error occurred. Please try again later.'
        }), 500

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'success': False,
            'message': 'Bad request',
            'error': 'The request could not be understood by the server.'
        }), 400

    return app


if __name__ == '__main__':
    create_app().run(debug=False, host='0.0.0.0', port=5000)
