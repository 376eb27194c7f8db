import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-very-secret-key'

    # CSRF Protection
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # 1 hour

    # Relational store. PostgreSQL in production, SQLite file locally.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance', 'progress.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sets app.current_user_id on each PostgreSQL transaction so the RLS policies apply
    RLS_SESSION_CONTEXT = _env_flag('RLS_SESSION_CONTEXT', 'True')

    # Document store for precomputed analytics
    MONGO_URI = os.environ.get('MONGO_URI') or 'mongodb://localhost:27017'
    MONGO_DB_NAME = os.environ.get('MONGO_DB_NAME') or 'rls_guard_dogtech'
    ANALYTICS_RETENTION_DAYS = int(os.environ.get('ANALYTICS_RETENTION_DAYS', 90))
    ANALYTICS_AUTO_REFRESH = _env_flag('ANALYTICS_AUTO_REFRESH', 'True')

    PROGRESS_PAGE_LIMIT = int(os.environ.get('PROGRESS_PAGE_LIMIT', 100))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Debug mode - only enable in development environment
    # NEVER set DEBUG=True in production for security reasons
    DEBUG = _env_flag('FLASK_DEBUG')


class ProductionConfig(Config):
    """Production configuration with enhanced security."""
    DEBUG = False  # Always False in production
    TESTING = False

    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour session timeout


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = True
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'  # In-memory database for tests
    RLS_SESSION_CONTEXT = False
    MONGO_URI = 'mongodb://localhost:27017'
    MONGO_DB_NAME = 'progress_tracker_test'
    ANALYTICS_AUTO_REFRESH = False
