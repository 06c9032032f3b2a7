"""
Shared error responses for the admin blueprints.
"""
from flask import jsonify
import logging

from services.errors import LedgerError

logger = logging.getLogger(__name__)


def error_response(error, serialize_doc, expose_details=False, message='Server Error'):
    """
    Turn an exception raised by a service into a JSON response.

    LedgerError subclasses carry their own status; anything else is logged
    with its traceback and returned as a 500.
    """
    if isinstance(error, LedgerError):
        return jsonify(serialize_doc(error.to_dict())), error.status_code

    logger.exception(f"{message}: {str(error)}")
    body = {'success': False, 'msg': message}
    if expose_details:
        body['error'] = str(error)
    return jsonify(body), 500
