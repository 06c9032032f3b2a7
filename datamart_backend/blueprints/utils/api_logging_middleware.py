"""
API Logging Middleware - log every API call with its status and timing
"""
from flask import request, g
import logging
import time

logger = logging.getLogger('datamart.api')


def setup_api_logging(app):
    """Setup middleware to log all API calls"""

    @app.before_request
    def before_request():
        """Record request start time"""
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        """Log API call after request completes"""
        if hasattr(g, 'start_time'):
            response_time_ms = (time.time() - g.start_time) * 1000
        else:
            response_time_ms = 0

        endpoint = request.endpoint
        if endpoint and not endpoint.startswith('static'):
            # Set by token_required
            user_id = getattr(g, 'current_user_id', None)
            logger.info(
                f"{request.method} {request.path} {response.status_code} "
                f"{response_time_ms:.1f}ms user={user_id or '-'}"
            )

        return response

    return app
