import hmac
from functools import wraps

from flask import current_app, jsonify, request

from pushtrello.container import get_services
from pushtrello.logging_config import get_logger

logger = get_logger(__name__)

PIN_HEADER = "X-Admin-Pin"


def admin_pin_required(f):
    """
    Decorator to require the admin pin for a route.

    Returns 403 Forbidden if no ADMIN_PIN is configured or the
    X-Admin-Pin header does not match it.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = get_services(current_app).settings.admin_pin
        if not expected:
            return jsonify({'error': 'Admin routes are disabled (ADMIN_PIN not set)'}), 403
        supplied = request.headers.get(PIN_HEADER, "")
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Rejected admin request", path=request.path, remote_addr=request.remote_addr)
            return jsonify({'error': 'Admin privileges required'}), 403
        return f(*args, **kwargs)
    return decorated_function
