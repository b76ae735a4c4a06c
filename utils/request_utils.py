"""
Request parsing helpers shared by the API blueprints
"""

from typing import Any, Dict, List, Optional, Tuple


class BadRequestError(ValueError):
    """Request payload or query string is invalid"""
    pass


def parse_batch_body(data: Optional[Dict[str, Any]]) -> Tuple[Optional[List[str]], Optional[int]]:
    """
    Validate a ``{conversation_ids?, limit?}`` batch request body.

    Raises:
        BadRequestError: On a malformed id list or a non-positive limit
    """
    data = data or {}
    if not isinstance(data, dict):
        raise BadRequestError('Request body must be a JSON object')

    conversation_ids = data.get('conversation_ids')
    if conversation_ids is not None:
        if not isinstance(conversation_ids, list) or not all(isinstance(i, str) for i in conversation_ids):
            raise BadRequestError('conversation_ids must be a list of strings')

    return conversation_ids, optional_positive_int(data.get('limit'), 'limit')


def optional_positive_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise BadRequestError(f'{name} must be a positive integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f'{name} must be a positive integer')
    if number < 1:
        raise BadRequestError(f'{name} must be a positive integer')
    return number


def optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise BadRequestError(f'{name} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f'{name} must be an integer')
