import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration shared across all environments."""
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
    # Open bill tabs live in the session; they expire after one work shift
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # Tax settings handed to the totals engine on every recompute
    TAX_PRICE_MODE   = os.environ.get('TAX_PRICE_MODE', 'exclusive')   # exclusive | inclusive
    DEFAULT_TAX_TYPE = os.environ.get('DEFAULT_TAX_TYPE', 'intra')     # intra | inter
    DEFAULT_TAX_RATE = os.environ.get('DEFAULT_TAX_RATE', '18')        # % when a product has none

    LOG_TO_FILE = True
    LOG_DIR = os.environ.get('LOG_DIR')   # None → <project>/logs

class DevelopmentConfig(Config):
    """Development environment configuration."""
    DEBUG = True

class ProductionConfig(Config):
    """Production environment configuration."""
    DEBUG = False

    # Ensure SECRET_KEY is set
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Session Cookie Security
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'True').lower() == 'true'


class TestingConfig(Config):
    """Testing environment configuration."""
    TESTING = True
    SECRET_KEY = 'testing-secret'
    SESSION_COOKIE_SECURE = False
    TAX_PRICE_MODE = 'exclusive'
    DEFAULT_TAX_TYPE = 'intra'
    DEFAULT_TAX_RATE = '18'
    LOG_TO_FILE = False

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
