"""
ConversationRepository - Data access layer for Conversation model
"""

from typing import List, Optional
from datetime import datetime
from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload
from repositories.base_repository import BaseRepository
from analytics_database import Conversation, AnalysisResult
from utils.datetime_utils import to_naive_utc
import logging

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation data access"""

    def __init__(self, session: Session):
        """Initialize repository with database session"""
        super().__init__(session, Conversation)

    def get_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]:
        return self.session.query(Conversation)\
            .filter(Conversation.conversation_id == conversation_id)\
            .first()

    def get_conversation_with_analysis(self, conversation_id: str) -> Optional[Conversation]:
        """
        Load a conversation together with its analysis row.

        Args:
            conversation_id: Public conversation identifier

        Returns:
            Conversation with ``analysis`` populated (possibly None), or None
            if the conversation does not exist
        """
        return self.session.query(Conversation)\
            .options(joinedload(Conversation.analysis))\
            .filter(Conversation.conversation_id == conversation_id)\
            .first()

    def list_conversations(self,
                           conversation_ids: Optional[List[str]] = None,
                           unanalyzed_only: bool = False,
                           analyzed_only: bool = False,
                           account_id: Optional[int] = None,
                           limit: Optional[int] = None) -> List[Conversation]:
        """
        List conversations for batch processing.

        Args:
            conversation_ids: Restrict to these identifiers
            unanalyzed_only: Only conversations without an analysis row
            analyzed_only: Only conversations that already have one
            account_id: Restrict to one account scope
            limit: Maximum number of rows

        Returns:
            Conversations, most recently uploaded first
        """
        query = self.session.query(Conversation)

        if conversation_ids:
            query = query.filter(Conversation.conversation_id.in_(conversation_ids))

        if unanalyzed_only:
            query = query.outerjoin(
                AnalysisResult,
                AnalysisResult.conversation_id == Conversation.conversation_id
            ).filter(AnalysisResult.id.is_(None))
        elif analyzed_only:
            query = query.join(
                AnalysisResult,
                AnalysisResult.conversation_id == Conversation.conversation_id
            )

        if account_id is not None:
            query = query.filter(Conversation.account_id == account_id)

        query = query.order_by(desc(Conversation.uploaded_at), desc(Conversation.id))

        if limit:
            query = query.limit(limit)

        return query.all()

    def count_similar_external_id(self, fragment: str, since: datetime,
                                  exclude_conversation_id: str) -> int:
        """
        Count other conversations whose external id contains ``fragment``
        and that happened on or after ``since``.

        Args:
            fragment: Substring of the external id to match
            since: Lower bound on conversation_date
            exclude_conversation_id: Conversation to leave out of the count

        Returns:
            Number of matching conversations
        """
        return self.session.query(Conversation)\
            .filter(
                Conversation.external_id.contains(fragment, autoescape=True),
                Conversation.conversation_date >= to_naive_utc(since),
                Conversation.conversation_id != exclude_conversation_id
            )\
            .count()

    def update_message_count(self, conversation: Conversation, message_count: int) -> Conversation:
        return self.update(conversation, message_count=message_count)
