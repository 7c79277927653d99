"""Services package for connection and publishing logic."""
from .base import StoreError, ConflictError, db_transaction
from .errors import SocialError

__all__ = ['StoreError', 'ConflictError', 'SocialError', 'db_transaction']
