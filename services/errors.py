"""Error taxonomy for connection and publishing failures.

Every error carries a machine-readable ``code`` and a human message, and
serializes to the ``{code, message, ...details}`` shape returned by the API.
"""


class SocialError(Exception):
    """Base exception for social connection errors."""

    status_code = 500
    default_code = 'unknown'

    def __init__(self, message, code=None, **details):
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)

    def to_dict(self):
        data = {'code': self.code, 'message': self.message}
        data.update(self.details)
        return data


class InputError(SocialError):
    """Missing or malformed request parameters."""
    status_code = 400
    default_code = 'invalid_request'


class UnknownProviderError(InputError):
    """Provider name is not supported."""
    status_code = 404
    default_code = 'unknown_provider'


class DuplicateContentError(InputError):
    """Provider rejected the post as a duplicate."""
    status_code = 409
    default_code = 'DUPLICATE_CONTENT'


class AuthError(SocialError):
    """Authorization flow aborted (state mismatch, denied by provider)."""
    status_code = 400
    default_code = 'state_mismatch'


class TokenError(SocialError):
    """Stored token is expired, revoked or cannot be refreshed."""
    status_code = 401
    default_code = 'REAUTH_REQUIRED'


class ScopeError(SocialError):
    """Connection lacks the permission required for the operation."""
    status_code = 403
    default_code = 'MISSING_SCOPE'


class ProviderError(SocialError):
    """Provider returned an unexpected response or could not be reached."""
    status_code = 502
    default_code = 'PROVIDER_ERROR'


class MediaError(SocialError):
    """Media upload or processing failed."""
    status_code = 422
    default_code = 'MEDIA_UPLOAD_FAILED'


class ConfigurationError(SocialError):
    """Missing or invalid configuration."""
    status_code = 503
    default_code = 'not_configured'
