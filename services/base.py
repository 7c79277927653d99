"""Shared service-layer helpers: transaction handling and store errors."""
import logging
from functools import wraps
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from extensions import db
from services.errors import SocialError

logger = logging.getLogger(__name__)


class StoreError(SocialError):
    """Database operation failed."""
    status_code = 500
    default_code = 'store_error'


class ConflictError(StoreError):
    """A concurrent write created the same record first."""
    status_code = 409
    default_code = 'conflict'


def db_transaction(func):
    """Decorator for database transaction handling with automatic rollback."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
            db.session.commit()
            return result
        except IntegrityError as e:
            db.session.rollback()
            logger.error(f"Integrity error in {func.__name__}: {e}")
            raise ConflictError("A record with this value already exists.")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error in {func.__name__}: {e}")
            raise StoreError(f"Database operation failed: {str(e)}")
    return wrapper
