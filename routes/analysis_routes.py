"""Lexical analysis API endpoints.

Runs the transcript analyzer over stored conversations and lists results.
"""

from flask import Blueprint, jsonify, request, current_app
from logging_config import get_logger
from services.enums import SentimentCategory
from utils.request_utils import BadRequestError, parse_batch_body, optional_positive_int, optional_int

logger = get_logger(__name__)

analysis_bp = Blueprint('analysis', __name__)


@analysis_bp.route('/run', methods=['POST'])
def run_analysis():
    """Analyze conversations.

    Expected JSON payload (all optional):
    {
        "conversation_ids": ["conv-1", "conv-2"],
        "limit": 500
    }

    Without ids, conversations that have not been analysed yet are processed.

    Returns:
        200: {success, analyzed, total, errors}
        400: Invalid payload
    """
    try:
        conversation_ids, limit = parse_batch_body(request.get_json(silent=True))
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    analysis_service = current_app.services.get('analysis')
    result = analysis_service.run_analysis(conversation_ids=conversation_ids, limit=limit)

    summary = result.unwrap()
    logger.info("Analysis batch finished",
                analyzed=summary['analyzed'],
                total=summary['total'],
                failed=len(summary['errors']))
    return jsonify({'success': True, **summary})


@analysis_bp.route('/results', methods=['GET'])
def list_results():
    """List analysis results, newest first.

    Query parameters:
    - page: Page number (default: 1)
    - per_page: Items per page (default: 50)
    - sentiment: Filter by category (very_positive|positive|neutral|negative|very_negative)
    - account_id: Filter by account scope

    Returns:
        200: {results, pagination}
        400: Invalid query parameter
    """
    try:
        page = optional_positive_int(request.args.get('page'), 'page') or 1
        per_page = optional_positive_int(request.args.get('per_page'), 'per_page') or 50
        account_id = optional_int(request.args.get('account_id'), 'account_id')
        sentiment = request.args.get('sentiment')
        if sentiment:
            try:
                sentiment = SentimentCategory(sentiment.lower()).value
            except ValueError:
                raise BadRequestError(f"Invalid sentiment: {sentiment}")
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    analysis_service = current_app.services.get('analysis')
    return jsonify(analysis_service.get_results(
        page=page,
        per_page=per_page,
        sentiment_category=sentiment,
        account_id=account_id
    ))
