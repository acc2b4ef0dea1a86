import os
import secrets
from dotenv import load_dotenv
from typing import Optional

# Find the absolute path of the root directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load the .env file from the root directory
load_dotenv(os.path.join(basedir, '.env'))


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    return int(value) if value else default


def _env_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    return float(value) if value else default


class Config:
    """
    Base configuration class. Contains default configuration settings
    and settings applicable to all environments.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    FLASK_ENV = os.environ.get('FLASK_ENV')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Variables that must be set before the app may start in production
    REQUIRED_PRODUCTION_VARS = [
        'DATABASE_URL',
        'TWILIO_ACCOUNT_SID',
        'TWILIO_AUTH_TOKEN',
        'BOTPRESS_TOKEN',
        'BOTPRESS_BOT_ID',
    ]

    @classmethod
    def validate_required_config(cls) -> None:
        """Validate that all required configuration is present"""
        # Skip validation in testing environment or during migrations
        if os.environ.get('FLASK_ENV') == 'testing' or os.environ.get('SKIP_ENV_VALIDATION'):
            return

        missing_vars = [var for var in cls.REQUIRED_PRODUCTION_VARS if not os.environ.get(var)]
        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'crm.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public base URL used to build invitation links
    APP_BASE_URL = os.environ.get('APP_BASE_URL', 'http://localhost:5000')

    # Invitations and accounts
    INVITATION_EXPIRY_DAYS = _env_int('INVITATION_EXPIRY_DAYS', 7)
    MIN_PASSWORD_LENGTH = _env_int('MIN_PASSWORD_LENGTH', 8)

    # Twilio
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER')
    TWILIO_WEBHOOK_PATH = os.environ.get('TWILIO_WEBHOOK_PATH', '/api/twilio/webhook')

    # Botpress chat platform
    BOTPRESS_API_URL = os.environ.get('BOTPRESS_API_URL', 'https://api.botpress.cloud')
    BOTPRESS_TOKEN = os.environ.get('BOTPRESS_TOKEN')
    BOTPRESS_BOT_ID = os.environ.get('BOTPRESS_BOT_ID')
    BOTPRESS_INTEGRATION_ID = os.environ.get('BOTPRESS_INTEGRATION_ID')
    BOTPRESS_WEBHOOK_URL = os.environ.get('BOTPRESS_WEBHOOK_URL')
    BOTPRESS_TIMEOUT = _env_float('BOTPRESS_TIMEOUT', 10)
    OUTREACH_TIMEOUT = _env_float('OUTREACH_TIMEOUT', 10)
    ASSISTANT_NAME = os.environ.get('ASSISTANT_NAME', 'Alex')

    # Mail settings
    MAIL_SERVER = os.environ.get('MAIL_SERVER')
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)  # Handle empty string
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    MAIL_USE_SSL = os.environ.get('MAIL_USE_SSL', 'false').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@leasingcrm.app')
    MAIL_SUPPRESS_SEND = False
    APP_NAME = os.environ.get('APP_NAME', 'Leasing CRM')

    # Monitoring
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    # Application settings
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024
    JSON_SORT_KEYS = False

    # Bcrypt settings
    BCRYPT_LOG_ROUNDS = 12  # Production default

    # Session configuration - sessions are stored in the application database
    SESSION_TYPE = 'sqlalchemy'
    SESSION_PERMANENT = False
    SESSION_KEY_PREFIX = 'leasingcrm:'
    SESSION_SQLALCHEMY_TABLE = 'sessions'
    SESSION_COOKIE_NAME = 'leasingcrm_session'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    @classmethod
    def init_app(cls, app):
        """Initialize server-side sessions; must run after db.init_app()"""
        from flask_session import Session
        from extensions import db

        app.config['SESSION_SQLALCHEMY'] = db
        Session(app)


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        Config.SQLALCHEMY_DATABASE_URI

    # Development mail settings - nothing leaves the machine
    MAIL_SUPPRESS_SEND = True

    # Allow non-secure cookies in development
    SESSION_COOKIE_SECURE = False

    # Faster bcrypt rounds for development
    BCRYPT_LOG_ROUNDS = 8


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    APP_BASE_URL = 'http://localhost'
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@example.com'
    SESSION_COOKIE_SECURE = False

    # External services are replaced with mocks in the registry
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    TWILIO_PHONE_NUMBER = '+15550000000'
    BOTPRESS_TOKEN = 'test-token'
    BOTPRESS_BOT_ID = 'test-bot'
    BOTPRESS_WEBHOOK_URL = 'http://botpress.test/webhook'

    # Fast bcrypt rounds for testing
    BCRYPT_LOG_ROUNDS = 4

    @classmethod
    def init_app(cls, app):
        """Testing uses Flask's signed-cookie sessions"""
        pass


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', '')

    # Secure bcrypt rounds for production
    BCRYPT_LOG_ROUNDS = 14

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization"""
        cls.validate_required_config()
        Config.init_app(app)


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> type[Config]:
    """Get configuration class based on environment"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    return config.get(config_name, DevelopmentConfig)
