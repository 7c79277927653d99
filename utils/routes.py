"""Route utilities shared by the JSON blueprints."""
import logging
import uuid
from functools import wraps

from flask import jsonify, request, g

from services.errors import SocialError

logger = logging.getLogger(__name__)


def get_request_id():
    """Get the request ID from Flask's g object.

    The request ID is set by app.before_request and persists
    for the duration of the request. Falls back to generating
    one if not set (e.g., in tests).
    """
    return getattr(g, 'request_id', str(uuid.uuid4())[:8])


def error_response(error: SocialError):
    """Serialize a SocialError as ``{code, message, ...details}`` with its status."""
    return jsonify(error.to_dict()), error.status_code


def handle_social_errors(f):
    """Decorator turning SocialError into JSON responses.

    Anything else is logged with the request id and answered with a
    generic 500 ``{code: 'unknown'}`` body.

    Usage:
        @social_bp.route('/<provider>/publish', methods=['POST'])
        @handle_social_errors
        def publish(provider):
            ...
    """
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except SocialError as e:
            log = logger.error if e.status_code >= 500 else logger.info
            log(f'{request.endpoint} [req:{get_request_id()}] {e.code}: {e.message}')
            return error_response(e)
        except Exception:
            logger.exception(f'Unexpected error in {request.endpoint} [req:{get_request_id()}]')
            return jsonify({'code': 'unknown', 'message': 'An unexpected error occurred'}), 500
    return wrapper
