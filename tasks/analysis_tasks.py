"""
Celery tasks for lexical analysis, churn scoring and trend recomputation

Tasks run inside the worker's Flask app context (see celery_worker.ContextTask)
and resolve their services from current_app.
"""

import time
from flask import current_app
from utils.datetime_utils import utc_now
from celery_worker import celery
from logging_config import get_logger, analysis_logger

logger = get_logger(__name__)


def _get_service(name: str):
    if not current_app.services.has(name):
        raise ValueError(f"{name} service not registered")
    return current_app.services.get(name)


@celery.task(bind=True)
def run_lexical_analysis(self, conversation_ids=None, limit=None):
    """Analyze conversations that have no analysis yet, or the given ids"""
    analysis_service = _get_service('analysis')

    started = time.monotonic()
    summary = analysis_service.run_analysis(conversation_ids=conversation_ids, limit=limit).unwrap()
    analysis_logger.log_batch_completed(
        job='lexical_analysis',
        processed=summary['analyzed'],
        failed=len(summary['errors']),
        duration_ms=round((time.monotonic() - started) * 1000, 1)
    )

    return {
        'success': True,
        'timestamp': utc_now().isoformat(),
        **summary
    }


@celery.task(bind=True)
def score_churn_batch(self, conversation_ids=None, account_id=None, limit=None):
    """Score churn risk for the given ids, or recent analysed conversations"""
    churn_service = _get_service('churn_prediction')

    started = time.monotonic()
    summary = churn_service.score_batch(
        conversation_ids=conversation_ids,
        account_id=account_id,
        limit=limit or current_app.config['CHURN_BATCH_LIMIT']
    ).unwrap()
    analysis_logger.log_batch_completed(
        job='churn_scoring',
        processed=summary['scored'],
        failed=len(summary['errors']),
        duration_ms=round((time.monotonic() - started) * 1000, 1)
    )

    return {
        'success': True,
        'timestamp': utc_now().isoformat(),
        **summary
    }


@celery.task(bind=True)
def recompute_sentiment_trends(self, account_id=None, days=None):
    """Upsert the daily sentiment trend rows for the recent window"""
    trend_service = _get_service('trend_analysis')

    try:
        started = time.monotonic()
        days = days or current_app.config['TREND_RECOMPUTE_DAYS']
        updated = trend_service.update_sentiment_trends(account_id=account_id, days=days)
        analysis_logger.log_trends_recomputed(
            account_id=account_id,
            days=days,
            rows=updated,
            duration_ms=round((time.monotonic() - started) * 1000, 1)
        )
    except Exception as e:
        logger.error("Sentiment trend recompute failed", error=str(e), account_id=account_id)
        # Retry up to 3 times with exponential backoff
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)

    return {
        'success': True,
        'timestamp': utc_now().isoformat(),
        'updated': updated
    }
