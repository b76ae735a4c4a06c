import os
import json
from dotenv import load_dotenv
from typing import Optional

# Find the absolute path of the root directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load the .env file from the root directory
load_dotenv(os.path.join(basedir, '.env'))


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _int_env(key: str, default: int) -> int:
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be an integer, got {value!r}")


def _weights_env(key: str) -> Optional[dict]:
    value = os.environ.get(key)
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a JSON object")


class Config:
    """
    Base configuration class. Contains default configuration settings
    and settings applicable to all environments.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-not-secret')
    FLASK_ENV = os.environ.get('FLASK_ENV')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'transcripts.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Celery uses Redis as broker and result backend
    CELERY_BROKER_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'

    # Analytics settings
    ANALYSIS_BATCH_LIMIT = _int_env('ANALYSIS_BATCH_LIMIT', 500)
    CHURN_BATCH_LIMIT = _int_env('CHURN_BATCH_LIMIT', 100)
    TREND_RECOMPUTE_DAYS = _int_env('TREND_RECOMPUTE_DAYS', 30)
    FORECAST_DAYS = _int_env('FORECAST_DAYS', 7)
    # Partial override of the churn factor weights, e.g. {"sentiment_weight": 0.4, ...}
    CHURN_WEIGHTS = _weights_env('CHURN_WEIGHTS')

    JSON_SORT_KEYS = False

    @staticmethod
    def get_required_env(key: str) -> str:
        """Get required environment variable or raise error"""
        value = os.environ.get(key)
        if not value:
            raise ConfigurationError(f"Required environment variable {key} is not set")
        return value

    @classmethod
    def init_app(cls, app):
        """Initialize application with this config"""
        from services.churn_prediction_service import ChurnWeights
        from services.common.exceptions import InvalidWeightsError

        try:
            ChurnWeights.from_mapping(app.config.get('CHURN_WEIGHTS'))
        except InvalidWeightsError as e:
            raise ConfigurationError(str(e))


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        Config.SQLALCHEMY_DATABASE_URI


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # Tasks run eagerly in tests, no broker needed
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'

    CHURN_WEIGHTS = None


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', '')

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization"""
        if not app.config.get('SQLALCHEMY_DATABASE_URI'):
            app.config['SQLALCHEMY_DATABASE_URI'] = cls.get_required_env('DATABASE_URL')
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
