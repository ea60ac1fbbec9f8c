"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'estate')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'estate')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'estate')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Redis Cache Configuration
    # Shared cache layer for public catalog listings
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '120'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'estate')

    # Public settings endpoint cache (in-process)
    SETTINGS_CACHE_TTL = int(os.getenv('SETTINGS_CACHE_TTL', '300'))  # 5 minutes

    # Orders
    ORDER_NUMBER_PREFIX = os.getenv('ORDER_NUMBER_PREFIX', 'ZE')
    ORDER_NUMBER_MAX_ATTEMPTS = int(os.getenv('ORDER_NUMBER_MAX_ATTEMPTS', '5'))

    # Guests may cancel a stay or activity up to this many hours before it starts
    BOOKING_CANCELLATION_NOTICE_HOURS = int(os.getenv('BOOKING_CANCELLATION_NOTICE_HOURS', '24'))

    # Payment instructions (informational, no gateway calls)
    BANK_NAME = os.getenv('BANK_NAME', 'Standard Chartered Bank')
    BANK_ACCOUNT_NAME = os.getenv('BANK_ACCOUNT_NAME', 'Zimunda Estate')
    BANK_ACCOUNT_NUMBER = os.getenv('BANK_ACCOUNT_NUMBER', '0123456789')
    BANK_BRANCH_CODE = os.getenv('BANK_BRANCH_CODE', '20-20-20')
    BANK_SWIFT_CODE = os.getenv('BANK_SWIFT_CODE', 'SCBLZWHX')
    PAYNOW_MERCHANT_ID = os.getenv('PAYNOW_MERCHANT_ID', 'ZIMUNDA')
    PAYMENTS_EMAIL = os.getenv('PAYMENTS_EMAIL', 'payments@zimunda.com')


class TestingConfig(Config):
    """Configuration used by the test-suite (in-memory SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
