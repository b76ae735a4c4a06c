"""Churn risk API endpoints."""

from flask import Blueprint, jsonify, request, current_app
from logging_config import get_logger
from utils.request_utils import BadRequestError, parse_batch_body, optional_positive_int, optional_int

logger = get_logger(__name__)

churn_bp = Blueprint('churn', __name__)


@churn_bp.route('', methods=['GET'])
def churn_overview():
    """Risk level counts and the current high-risk conversations.

    Query parameters:
    - account_id: Restrict to one account scope
    - limit: Maximum high-risk conversations (default: 20)

    Returns:
        200: {statistics: {high, medium, low, details}, conversations: [...]}
    """
    try:
        account_id = optional_int(request.args.get('account_id'), 'account_id')
        limit = optional_positive_int(request.args.get('limit'), 'limit') or 20
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    churn_service = current_app.services.get('churn_prediction')
    return jsonify({
        'statistics': churn_service.get_churn_statistics(account_id),
        'conversations': churn_service.get_high_risk_conversations(account_id, limit=limit),
    })


@churn_bp.route('/<conversation_id>', methods=['GET'])
def get_churn_risk(conversation_id):
    """Calculate churn risk for one conversation without storing it.

    Returns:
        200: {score, level, factors, recommended_actions}
        404: Conversation or its analysis not found
    """
    churn_service = current_app.services.get('churn_prediction')
    return jsonify(churn_service.calculate_churn_risk(conversation_id).to_dict())


@churn_bp.route('/<conversation_id>/score', methods=['POST'])
def score_conversation(conversation_id):
    """Calculate and persist churn risk for one conversation.

    Returns:
        200: {score, level, factors, recommended_actions}
        404: Conversation or its analysis not found
    """
    churn_service = current_app.services.get('churn_prediction')
    return jsonify(churn_service.score_conversation(conversation_id).to_dict())


@churn_bp.route('/batch', methods=['POST'])
def score_batch():
    """Score many conversations.

    Expected JSON payload (all optional):
    {
        "conversation_ids": ["conv-1"],
        "limit": 100,
        "account_id": 3
    }

    Returns:
        200: {success, scored, total, errors}
        400: Invalid payload
    """
    data = request.get_json(silent=True)
    try:
        conversation_ids, limit = parse_batch_body(data)
        account_id = optional_int((data or {}).get('account_id'), 'account_id')
    except BadRequestError as e:
        return jsonify({'error': str(e)}), 400

    churn_service = current_app.services.get('churn_prediction')
    result = churn_service.score_batch(
        conversation_ids=conversation_ids,
        account_id=account_id,
        limit=limit or current_app.config['CHURN_BATCH_LIMIT']
    )

    summary = result.unwrap()
    logger.info("Churn batch finished",
                scored=summary['scored'],
                total=summary['total'],
                failed=len(summary['errors']))
    return jsonify({'success': True, **summary})
