from flask import Blueprint, request, jsonify
from werkzeug.security import check_password_hash
from datetime import datetime
import jwt
import logging

logger = logging.getLogger(__name__)


def init_auth_blueprint(mongo, app_config):
    """Initialize the auth blueprint with database and config"""
    auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

    @auth_bp.route('/login', methods=['POST'])
    def login():
        try:
            data = request.get_json(silent=True) or {}
            email = str(data.get('email', '')).lower().strip()
            password = data.get('password', '')

            if not email or not password:
                return jsonify({
                    'success': False,
                    'message': 'Email and password are required',
                    'errors': {
                        'email': ['Email is required'] if not email else [],
                        'password': ['Password is required'] if not password else []
                    }
                }), 400

            user = mongo.db.users.find_one({'email': email})
            if not user or not check_password_hash(user.get('password', ''), password):
                logger.info(f"Failed login for {email}")
                return jsonify({
                    'success': False,
                    'message': 'Invalid credentials',
                    'errors': {'email': ['Invalid email or password']}
                }), 401

            if user.get('isDisabled'):
                return jsonify({
                    'success': False,
                    'message': 'Your account has been disabled',
                    'reason': user.get('disableReason')
                }), 403

            expires_at = datetime.utcnow() + app_config.jwt_expiration_delta
            access_token = jwt.encode({
                'user_id': str(user['_id']),
                'exp': expires_at
            }, app_config.SECRET_KEY, algorithm='HS256')

            mongo.db.users.update_one(
                {'_id': user['_id']},
                {'$set': {'lastLogin': datetime.utcnow()}}
            )

            return jsonify({
                'success': True,
                'data': {
                    'token': access_token,
                    'access_token': access_token,
                    'expires_at': expires_at.isoformat() + 'Z',
                    'user': {
                        'id': str(user['_id']),
                        'name': user.get('name'),
                        'email': user['email'],
                        'phoneNumber': user.get('phoneNumber'),
                        'role': user.get('role', 'user'),
                        'walletBalance': user.get('walletBalance', 0)
                    }
                },
                'message': 'Login successful'
            })

        except Exception as e:
            logger.exception(f"Login failed: {str(e)}")
            return jsonify({
                'success': False,
                'message': 'Login failed',
                'errors': {'general': ['An unexpected error occurred']}
            }), 500

    return auth_bp
