"""
Domain exceptions for the analytics services
"""


class NotFoundError(Exception):
    """A requested record does not exist"""
    pass


class ConversationNotFoundError(NotFoundError):
    """No conversation with the requested identifier"""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class AnalysisNotFoundError(NotFoundError):
    """The conversation exists but has not been analysed yet"""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"No analysis found for conversation: {conversation_id}")


class InvalidWeightsError(ValueError):
    """Churn factor weights are negative or do not sum to 1.0"""
    pass
