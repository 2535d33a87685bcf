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

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'payables')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'payables')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'payables')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Payables defaults
    DEFAULT_CURRENCY_CODE = os.getenv('DEFAULT_CURRENCY_CODE', 'USD')
    DEFAULT_PAYMENT_TERMS_DAYS = int(os.getenv('DEFAULT_PAYMENT_TERMS_DAYS', '30'))

    # Redis cache for reference data (suppliers, sites, items, tax rates)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_REFERENCE_TTL = int(os.getenv('CACHE_REFERENCE_TTL', '300'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'payables')

    # Authority client (used by the editors, not by the Flask app itself)
    AUTHORITY_BASE_URL = os.getenv('AUTHORITY_BASE_URL', 'http://localhost:5000')
    AUTHORITY_TIMEOUT_SECONDS = float(os.getenv('AUTHORITY_TIMEOUT_SECONDS', '10'))

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')
