"""
Models package - re-exports all models.

Imports like `from models import User` work; modules can also import from
the specific submodule:
    from models.auth import User
    from models.social import SocialConnection
"""

# Auth models
from models.auth import User

# Social connection models
from models.social import (
    SocialConnection,
    AuthorizationAttempt,
    PublishRecord,
)

__all__ = [
    'User',
    'SocialConnection',
    'AuthorizationAttempt',
    'PublishRecord',
]
