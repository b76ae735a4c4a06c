# app.py

from flask import Flask, g, request, jsonify
from werkzeug.exceptions import HTTPException
from config import get_config
from extensions import db
import os
import uuid
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="conversation-analytics", log_level=os.environ.get('LOG_LEVEL', 'INFO'))
logger = get_logger(__name__)


# Configure Sentry for production error tracking
def init_sentry():
    """Initialize Sentry error tracking in production."""
    sentry_dsn = os.environ.get('SENTRY_DSN')
    if sentry_dsn and os.environ.get('FLASK_ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        from sentry_sdk.integrations.celery import CeleryIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style='endpoint'),
                SqlalchemyIntegration(),
                CeleryIntegration()
            ],
            traces_sample_rate=0.1,
            environment=os.environ.get('FLASK_ENV', 'development'),
            release=os.environ.get('GIT_SHA', 'unknown')
        )
        logger.info("Sentry error tracking initialized")


init_sentry()


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)

    if test_config:
        app.config.update(test_config)

    config_class.init_app(app)

    db.init_app(app)

    app.services = create_service_registry(app)

    @app.before_request
    def before_request():
        g.request_id = str(uuid.uuid4())
        logger.info("Request started",
                    request_id=g.request_id,
                    method=request.method,
                    path=request.path)

    @app.after_request
    def after_request(response):
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring"""
        from sqlalchemy import text
        health_status = {
            'status': 'healthy',
            'service': 'conversation-analytics'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except Exception as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error("Health check database error", error=str(e))

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register blueprints for routes
    from routes.analysis_routes import analysis_bp
    from routes.churn_routes import churn_bp
    from routes.trend_routes import trend_bp

    app.register_blueprint(analysis_bp, url_prefix='/api/analysis')
    app.register_blueprint(churn_bp, url_prefix='/api/churn')
    app.register_blueprint(trend_bp, url_prefix='/api/trends')

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def create_service_registry(app):
    """Register repositories and services as lazy factories."""
    from services.service_registry import ServiceRegistry
    from services.churn_prediction_service import ChurnWeights

    registry = ServiceRegistry()

    # db.session is a scoped session proxy, so singletons always see the
    # session of the current app context
    registry.register_singleton('db_session', lambda: db.session)

    registry.register_singleton(
        'conversation_repository',
        lambda db_session: _create_conversation_repository(db_session),
        dependencies=['db_session']
    )
    registry.register_singleton(
        'analysis_repository',
        lambda db_session: _create_analysis_repository(db_session),
        dependencies=['db_session']
    )
    registry.register_singleton(
        'sentiment_trend_repository',
        lambda db_session: _create_sentiment_trend_repository(db_session),
        dependencies=['db_session']
    )

    registry.register_singleton('transcript_analyzer', _create_transcript_analyzer)

    batch_limit = app.config['ANALYSIS_BATCH_LIMIT']
    registry.register_singleton(
        'analysis',
        lambda conversation_repository, analysis_repository, transcript_analyzer: _create_analysis_service(
            conversation_repository, analysis_repository, transcript_analyzer, batch_limit
        ),
        dependencies=['conversation_repository', 'analysis_repository', 'transcript_analyzer']
    )

    weights = ChurnWeights.from_mapping(app.config.get('CHURN_WEIGHTS'))
    registry.register_singleton(
        'churn_prediction',
        lambda conversation_repository, analysis_repository: _create_churn_prediction_service(
            conversation_repository, analysis_repository, weights
        ),
        dependencies=['conversation_repository', 'analysis_repository']
    )

    recompute_days = app.config['TREND_RECOMPUTE_DAYS']
    forecast_days = app.config['FORECAST_DAYS']
    registry.register_singleton(
        'trend_analysis',
        lambda sentiment_trend_repository: _create_trend_analysis_service(
            sentiment_trend_repository, recompute_days, forecast_days
        ),
        dependencies=['sentiment_trend_repository']
    )

    errors = registry.validate_dependencies()
    if errors:
        for error in errors:
            logger.error("Service dependency error", error=error)
        raise RuntimeError(f"Service dependency errors: {errors}")

    if app.debug:
        logger.debug("Service initialization order", order=registry.get_initialization_order())

    return registry


def register_error_handlers(app):
    """JSON error responses for the API"""
    from services.common.exceptions import NotFoundError

    @app.errorhandler(NotFoundError)
    def not_found(error):
        logger.warning("Record not found",
                       request_id=getattr(g, 'request_id', None),
                       error=str(error))
        return jsonify({'error': str(error)}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.exception("Internal server error",
                         request_id=getattr(g, 'request_id', None),
                         error=str(error))
        return jsonify({'error': 'Internal server error'}), 500


def _create_conversation_repository(db_session):
    from repositories.conversation_repository import ConversationRepository
    return ConversationRepository(db_session)


def _create_analysis_repository(db_session):
    from repositories.analysis_repository import AnalysisRepository
    return AnalysisRepository(db_session)


def _create_sentiment_trend_repository(db_session):
    from repositories.sentiment_trend_repository import SentimentTrendRepository
    return SentimentTrendRepository(db_session)


def _create_transcript_analyzer():
    from services.transcript_analyzer_service import TranscriptAnalyzerService
    return TranscriptAnalyzerService()


def _create_analysis_service(conversation_repository, analysis_repository, transcript_analyzer, batch_limit):
    from services.analysis_service import AnalysisService
    return AnalysisService(
        conversation_repository=conversation_repository,
        analysis_repository=analysis_repository,
        transcript_analyzer=transcript_analyzer,
        batch_limit=batch_limit
    )


def _create_churn_prediction_service(conversation_repository, analysis_repository, weights):
    from services.churn_prediction_service import ChurnPredictionService
    return ChurnPredictionService(
        conversation_repository=conversation_repository,
        analysis_repository=analysis_repository,
        weights=weights
    )


def _create_trend_analysis_service(sentiment_trend_repository, recompute_days, forecast_days):
    from services.trend_analysis_service import TrendAnalysisService
    return TrendAnalysisService(
        trend_repository=sentiment_trend_repository,
        recompute_days=recompute_days,
        forecast_days=forecast_days
    )
