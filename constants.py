"""Centralized constants for the application."""

# Password requirements
MIN_PASSWORD_LENGTH = 12
PASSWORD_SPECIAL_CHARS = '!@#$%^&*()_+-=[]{}|;:,.<>?'

# Account lockout
MAX_FAILED_LOGIN_ATTEMPTS = 5
LOCKOUT_MINUTES = [5, 15, 60, 1440]

# Rate limits (Flask-Limiter syntax)
RATE_LIMITS = {
    'login': '5 per minute',
    'register': '3 per hour',
    'connect': '10 per minute',
    'callback': '20 per minute',
    'publish': '10 per minute',
}

# Token lifecycle
TOKEN_REFRESH_LEEWAY_SECONDS = 5 * 60

# Pending authorization attempts expire after this long
AUTHORIZATION_ATTEMPT_TTL_SECONDS = 10 * 60

# Media upload
MEDIA_CHUNK_SIZE = 4 * 1024 * 1024
MEDIA_STATUS_MAX_POLLS = 30
MEDIA_STATUS_MAX_WAIT_SECONDS = 300
MEDIA_STATUS_DEFAULT_INTERVAL = 5

# Post limits
MAX_POST_LENGTH = {
    'twitter': 280,
    'linkedin': 3000,
    'instagram': 2200,
}

# Pagination defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
