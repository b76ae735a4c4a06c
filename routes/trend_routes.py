"""Sentiment trend API endpoints."""

from flask import Blueprint, jsonify, request, current_app
from logging_config import get_logger
from utils.request_utils import BadRequestError, optional_positive_int, optional_int

logger = get_logger(__name__)

trend_bp = Blueprint('trends', __name__)


@trend_bp.route('', methods=['GET'])
def get_trends():
    """Stored daily trend series with forecast, anomalies and insights.

    Query parameters:
    - days: Length of the historical window (default: 30)
    - account_id: Account scope (default: all accounts)

    Returns:
        200: {historical, forecast, anomalies, insights}
        400: Invalid query parameter
    """
    try:
        days = optional_positive_int(request.args.get('days'), 'days') or 30
        account_id = optional_int(request.args.get('account_id'), 'account_id')
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    trend_service = current_app.services.get('trend_analysis')
    return jsonify(trend_service.get_trend_report(days=days, account_id=account_id))


@trend_bp.route('/recompute', methods=['POST'])
def recompute_trends():
    """Re-aggregate and upsert the daily trend rows.

    Expected JSON payload (all optional):
    {
        "account_id": 3,
        "days": 30
    }

    Returns:
        200: {success, updated}
        400: Invalid payload
    """
    data = request.get_json(silent=True) or {}
    try:
        if not isinstance(data, dict):
            raise BadRequestError('Request body must be a JSON object')
        account_id = optional_int(data.get('account_id'), 'account_id')
        days = optional_positive_int(data.get('days'), 'days')
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    trend_service = current_app.services.get('trend_analysis')
    updated = trend_service.update_sentiment_trends(account_id=account_id, days=days)
    logger.info("Sentiment trends recomputed", account_id=account_id, rows=updated)
    return jsonify({'success': True, 'updated': updated})
