import os
import secrets
from pathlib import Path
from datetime import timedelta

from cryptography.fernet import Fernet
from dotenv import load_dotenv

from constants import (
    TOKEN_REFRESH_LEEWAY_SECONDS,
    AUTHORIZATION_ATTEMPT_TTL_SECONDS,
    MEDIA_CHUNK_SIZE,
    MEDIA_STATUS_MAX_POLLS,
    MEDIA_STATUS_MAX_WAIT_SECONDS,
)

# Load environment variables from .env file if present
load_dotenv()

BASE_DIR = Path(__file__).parent.absolute()


def get_database_url():
    """Get database URL, handling PostgreSQL URL format variations."""
    url = os.environ.get('DATABASE_URL')
    if url:
        # Fix postgres:// to postgresql:// (Railway/Heroku use postgres://)
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        return url
    return f'sqlite:///{BASE_DIR}/social_connect.db'


def is_sqlite():
    """Check if using SQLite database."""
    return get_database_url().startswith('sqlite://')


def get_secret_key():
    """Get secret key from environment or generate for development."""
    key = os.environ.get('SECRET_KEY')
    if key:
        return key

    # Check if we're in production mode
    if os.environ.get('FLASK_ENV') == 'production':
        raise RuntimeError(
            "SECRET_KEY environment variable must be set in production. "
            "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
        )

    # Development mode: generate a random key (will change on restart)
    return secrets.token_hex(32)


def env_int(name, default):
    return int(os.environ.get(name, default))


class Config:
    """Base configuration."""
    SECRET_KEY = get_secret_key()
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Database connection pooling (for PostgreSQL/MySQL only)
    # SQLite doesn't support these options
    SQLALCHEMY_ENGINE_OPTIONS = {} if is_sqlite() else {
        'pool_size': 10,           # Number of connections to keep open
        'pool_recycle': 3600,      # Recycle connections after 1 hour
        'pool_pre_ping': True,     # Verify connections before use
        'max_overflow': 20,        # Allow up to 20 additional connections
    }

    # Security settings
    DEBUG = False
    MAX_CONTENT_LENGTH = 64 * 1024 * 1024  # 64MB max request size (video uploads)
    SESSION_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Session timeout settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    SESSION_REFRESH_EACH_REQUEST = True

    # Remember me cookie settings (Flask-Login)
    REMEMBER_COOKIE_DURATION = timedelta(days=30)
    REMEMBER_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = 'Lax'

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # OAuth 2.0 client credentials
    TWITTER_CLIENT_ID = os.environ.get('TWITTER_CLIENT_ID')
    TWITTER_CLIENT_SECRET = os.environ.get('TWITTER_CLIENT_SECRET')
    LINKEDIN_CLIENT_ID = os.environ.get('LINKEDIN_CLIENT_ID')
    LINKEDIN_CLIENT_SECRET = os.environ.get('LINKEDIN_CLIENT_SECRET')
    INSTAGRAM_CLIENT_ID = os.environ.get('INSTAGRAM_CLIENT_ID')
    INSTAGRAM_CLIENT_SECRET = os.environ.get('INSTAGRAM_CLIENT_SECRET')

    # Twitter OAuth 1.0a app credentials (required for media upload)
    TWITTER_API_KEY = os.environ.get('TWITTER_API_KEY')
    TWITTER_API_SECRET = os.environ.get('TWITTER_API_SECRET')
    TWITTER_ACCESS_TOKEN = os.environ.get('TWITTER_ACCESS_TOKEN')
    TWITTER_ACCESS_TOKEN_SECRET = os.environ.get('TWITTER_ACCESS_TOKEN_SECRET')

    # Fernet key for tokens at rest
    SOCIAL_TOKEN_ENCRYPTION_KEY = os.environ.get('SOCIAL_TOKEN_ENCRYPTION_KEY')

    # Provider calls and token lifecycle
    PROVIDER_REQUEST_TIMEOUT = env_int('PROVIDER_REQUEST_TIMEOUT', 30)
    TOKEN_REFRESH_LEEWAY = env_int('TOKEN_REFRESH_LEEWAY', TOKEN_REFRESH_LEEWAY_SECONDS)
    AUTHORIZATION_ATTEMPT_TTL = env_int('AUTHORIZATION_ATTEMPT_TTL', AUTHORIZATION_ATTEMPT_TTL_SECONDS)

    # Media upload and processing
    MEDIA_CHUNK_SIZE = env_int('MEDIA_CHUNK_SIZE', MEDIA_CHUNK_SIZE)
    MEDIA_STATUS_MAX_POLLS = env_int('MEDIA_STATUS_MAX_POLLS', MEDIA_STATUS_MAX_POLLS)
    MEDIA_STATUS_MAX_WAIT = env_int('MEDIA_STATUS_MAX_WAIT', MEDIA_STATUS_MAX_WAIT_SECONDS)

    # Where browser callbacks land after connecting (JSON response when unset)
    CONNECT_RESULT_REDIRECT = os.environ.get('CONNECT_RESULT_REDIRECT')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SESSION_COOKIE_SECURE = True

    def __init__(self):
        # Validate required production settings
        if not os.environ.get('SECRET_KEY'):
            raise RuntimeError("SECRET_KEY must be set in production")
        if not os.environ.get('SOCIAL_TOKEN_ENCRYPTION_KEY'):
            raise RuntimeError("SOCIAL_TOKEN_ENCRYPTION_KEY must be set in production")


class TestConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False  # Disable CSRF for testing
    RATELIMIT_ENABLED = False
    SESSION_COOKIE_SECURE = False
    # SQLite doesn't support connection pooling options
    SQLALCHEMY_ENGINE_OPTIONS = {}

    SOCIAL_TOKEN_ENCRYPTION_KEY = Fernet.generate_key().decode()
    TWITTER_CLIENT_ID = 'twitter-client-id'
    TWITTER_CLIENT_SECRET = 'twitter-client-secret'
    LINKEDIN_CLIENT_ID = 'linkedin-client-id'
    LINKEDIN_CLIENT_SECRET = 'linkedin-client-secret'
    INSTAGRAM_CLIENT_ID = 'instagram-client-id'
    INSTAGRAM_CLIENT_SECRET = 'instagram-client-secret'
    TWITTER_API_KEY = None
    TWITTER_API_SECRET = None
    TWITTER_ACCESS_TOKEN = None
    TWITTER_ACCESS_TOKEN_SECRET = None
    CONNECT_RESULT_REDIRECT = None
