"""Configuration module for the Attendance Integrity Service."""
import os
from datetime import timedelta

def _parse_csv(value, fallback):
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(',') if item.strip()]
    return parsed or fallback

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration (tokens are issued by the identity provider)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_ALGORITHM = 'HS256'
    JWT_ROLE_CLAIM = 'role'

    # CORS
    CORS_ORIGINS = _parse_csv(
        os.environ.get('CORS_ORIGINS'),
        ["http://localhost:*", "http://127.0.0.1:*"]
    )

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day, 50 per hour"

    # Locking
    REDIS_URL = os.environ.get('REDIS_URL')
    LOCK_BACKEND = os.environ.get('LOCK_BACKEND', 'local')  # local, redis
    LOCK_TIMEOUT_SECONDS = float(os.environ.get('LOCK_TIMEOUT_SECONDS', '10'))
    LOCK_LEASE_SECONDS = float(os.environ.get('LOCK_LEASE_SECONDS', '30'))

    # Attendance
    GEOFENCE_RADIUS_METERS = float(os.environ.get('GEOFENCE_RADIUS_METERS', '100'))
    ATTENDANCE_DEDUP_WINDOW_SECONDS = 300  # 5 minutes either side
    SUPPORTED_MEETING_PLATFORMS = [
        'zoom.us',
        'meet.google.com',
        'teams.microsoft.com',
        'teams.live.com',
        'webex.com',
        'gotomeeting.com'
    ]

    # Audit
    AUDIT_RETENTION_MIN_DAYS = 30
    AUDIT_RETENTION_MAX_DAYS = 2555  # 7 years
    AUDIT_EXPORT_MAX_ROWS = 10000
    AUDIT_APPEND_MAX_ATTEMPTS = 5
    AUDIT_QUERY_MAX_LIMIT = 100

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///attendance_integrity_dev.db'
    SQLALCHEMY_ECHO = True
    LOG_LEVEL = 'DEBUG'

class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')

    # Multi-worker deployments need the shared lock backend
    LOCK_BACKEND = os.environ.get('LOCK_BACKEND', 'redis')

    # Enhanced security
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Stricter limits
    RATELIMIT_DEFAULT = "100 per day, 20 per hour"

    LOG_FILE = os.environ.get('LOG_FILE', '/app/logs/app.log')

class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)
    RATELIMIT_ENABLED = False
    LOCK_BACKEND = 'local'
    LOCK_TIMEOUT_SECONDS = 5.0
    LOG_LEVEL = 'WARNING'

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

def get_config(config_name=None):
    """Get configuration by name."""
    return config.get(config_name or os.environ.get('FLASK_ENV', 'default'), config['default'])
