"""
Configuration classes for the Tourbook API.
Supports Development, Testing, and Production environments.
"""
import os
from dataclasses import dataclass
from datetime import timedelta


class Config:
    """Base configuration with default settings."""

    # Security - SECRET_KEY is validated in production config
    _secret_key = os.environ.get('SECRET_KEY')
    if not _secret_key:
        import warnings
        warnings.warn(
            "SECRET_KEY not set in environment. Using insecure default key. "
            "Set SECRET_KEY environment variable for production!",
            UserWarning
        )
        _secret_key = 'dev-secret-key-change-in-production'
    SECRET_KEY = _secret_key

    # Database
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = (
        {}
        if os.environ.get('DATABASE_URL', 'sqlite').startswith('sqlite')
        else {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }
    )

    # JWT (separate keys for access and refresh tokens, fall back to SECRET_KEY)
    JWT_ACCESS_SECRET = os.environ.get('JWT_ACCESS_SECRET')
    JWT_REFRESH_SECRET = os.environ.get('JWT_REFRESH_SECRET')
    JWT_ACCESS_EXPIRES_MINUTES = int(os.environ.get('JWT_ACCESS_EXPIRES_MINUTES', 10))
    JWT_REFRESH_EXPIRES_DAYS = int(os.environ.get('JWT_REFRESH_EXPIRES_DAYS', 7))
    JWT_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    JWT_REFRESH_COOKIE_PATH = '/api/v1/auth'

    # Password reset
    PASSWORD_RESET_EXPIRES_MINUTES = 10

    # Rate Limiting
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_DEFAULT = os.environ.get('RATE_LIMIT_GLOBAL', '100/hour')
    RATELIMIT_HEADERS_ENABLED = True

    # Mail
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@tourbook.app')

    # Pagination (no hard maximum on client-supplied limit)
    API_DEFAULT_PAGE_SIZE = 100

    # File Upload
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB
    UPLOAD_FOLDER = os.environ.get(
        'UPLOAD_FOLDER',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'static', 'img'),
    )

    # Error responses carry stack traces only when this is on
    EXPOSE_ERROR_DETAILS = False

    # CORS
    APP_CORS_ORIGINS = os.environ.get('APP_CORS_ORIGINS', 'http://localhost:3000')

    # Stripe (checkout sessions)
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')

    # Sentry (error monitoring, production only)
    SENTRY_DSN = os.environ.get('SENTRY_DSN')


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    EXPOSE_ERROR_DETAILS = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///tourbook_dev.db'
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = False

    # Use SQLite in-memory for tests (portable, no external DB required)
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or \
        'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    JWT_ACCESS_SECRET = 'test-access-secret-that-is-long-enough-32'
    JWT_REFRESH_SECRET = 'test-refresh-secret-that-is-long-enough-32'

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    # Keep outgoing mail in memory
    MAIL_BACKEND = 'locmem'

    JWT_COOKIE_SECURE = False

    STRIPE_SECRET_KEY = 'sk_test_fake_key_for_testing'
    APP_URL = 'http://localhost'


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False

    # SECRET_KEY and DATABASE_URL - validated in init_app (not at import time)
    SECRET_KEY = os.environ.get('SECRET_KEY')
    _db_url = os.environ.get('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    JWT_COOKIE_SECURE = True

    # Redis for rate limiting (shared counters across workers)
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20,
    }

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization with validation."""
        import logging
        logger = logging.getLogger(__name__)

        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable is required in production")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable is required in production")
        for key in ('JWT_ACCESS_SECRET', 'JWT_REFRESH_SECRET'):
            value = os.environ.get(key)
            if not value or len(value) < 32:
                raise ValueError(f"{key} must be set to at least 32 characters in production")

        if not os.environ.get('REDIS_URL'):
            logger.warning(
                "REDIS_URL not set, rate limiter uses in-memory storage. "
                "Each Gunicorn worker has independent counters."
            )

        if not cls.STRIPE_SECRET_KEY:
            logger.warning("STRIPE_SECRET_KEY not set, checkout sessions will fail.")


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


@dataclass(frozen=True)
class AuthSettings:
    """Token settings, built once at startup from the loaded app config."""

    access_secret: str
    refresh_secret: str
    access_expires: timedelta = timedelta(minutes=10)
    refresh_expires: timedelta = timedelta(days=7)
    algorithm: str = 'HS256'
    cookie_secure: bool = False
    refresh_cookie_path: str = '/api/v1/auth'

    @classmethod
    def from_config(cls, app_config):
        secret = app_config['SECRET_KEY']
        return cls(
            access_secret=app_config.get('JWT_ACCESS_SECRET') or secret,
            refresh_secret=app_config.get('JWT_REFRESH_SECRET') or secret,
            access_expires=timedelta(minutes=app_config.get('JWT_ACCESS_EXPIRES_MINUTES', 10)),
            refresh_expires=timedelta(days=app_config.get('JWT_REFRESH_EXPIRES_DAYS', 7)),
            cookie_secure=bool(app_config.get('JWT_COOKIE_SECURE', False)),
            refresh_cookie_path=app_config.get('JWT_REFRESH_COOKIE_PATH', '/api/v1/auth'),
        )
