"""
AnalysisRepository - Data access layer for AnalysisResult entities
Stores lexical analysis output and churn-risk scores, one row per conversation
"""

from typing import List, Optional, Dict, Any
from sqlalchemy import func, desc
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository, PaginationParams, PaginatedResult
from analytics_database import AnalysisResult, Conversation
from utils.datetime_utils import utc_now
import logging

logger = logging.getLogger(__name__)

LEXICAL_FIELDS = (
    'overall_sentiment',
    'sentiment_label',
    'sentiment_category',
    'positive_messages',
    'negative_messages',
    'neutral_messages',
    'keywords',
    'avg_message_length',
    'avg_response_time',
    'agent_performance_score',
    'customer_satisfaction_score',
    'message_count',
)

CHURN_FIELDS = (
    'churn_risk_score',
    'churn_risk_level',
    'churn_risk_factors',
    'churn_recommended_actions',
    'churn_calculated_at',
)


class AnalysisRepository(BaseRepository[AnalysisResult]):
    """Repository for AnalysisResult data access"""

    def __init__(self, session: Session):
        """Initialize repository with database session"""
        super().__init__(session, AnalysisResult)

    def get_by_conversation_id(self, conversation_id: str) -> Optional[AnalysisResult]:
        return self.session.query(AnalysisResult)\
            .filter(AnalysisResult.conversation_id == conversation_id)\
            .first()

    def upsert_lexical_analysis(self, conversation_id: str, fields: Dict[str, Any]) -> AnalysisResult:
        """
        Create or overwrite the lexical analysis for a conversation.

        Re-analysis replaces every lexical column and clears any churn score,
        since it was derived from the previous analysis.

        Args:
            conversation_id: Conversation the analysis belongs to
            fields: Lexical columns; unknown keys are ignored

        Returns:
            The stored AnalysisResult

        Raises:
            SQLAlchemyError: If database operation fails
        """
        values = {key: fields.get(key) for key in LEXICAL_FIELDS}
        for counter in ('positive_messages', 'negative_messages', 'neutral_messages', 'message_count'):
            values[counter] = values[counter] or 0
        values['analyzed_at'] = utc_now()

        existing = self.get_by_conversation_id(conversation_id)
        if existing is None:
            return self.create(conversation_id=conversation_id, **values)

        values.update({key: None for key in CHURN_FIELDS})
        return self.update(existing, **values)

    def upsert_churn_result(self, conversation_id: str, score: int, level: str,
                            factors: List[Dict[str, Any]], actions: List[str]) -> AnalysisResult:
        """
        Persist a churn-risk result onto the conversation's analysis row.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        values = {
            'churn_risk_score': score,
            'churn_risk_level': level,
            'churn_risk_factors': factors,
            'churn_recommended_actions': actions,
            'churn_calculated_at': utc_now(),
        }

        existing = self.get_by_conversation_id(conversation_id)
        if existing is None:
            return self.create(conversation_id=conversation_id, **values)
        return self.update(existing, **values)

    def get_results_page(self,
                         pagination: PaginationParams,
                         sentiment_category: Optional[str] = None,
                         account_id: Optional[int] = None) -> PaginatedResult[AnalysisResult]:
        """
        Page through analysis results, newest analysis first.

        Args:
            pagination: Page and page size
            sentiment_category: Only results in this SentimentCategory
            account_id: Only conversations in this account scope
        """
        query = self.session.query(AnalysisResult)\
            .join(Conversation, Conversation.conversation_id == AnalysisResult.conversation_id)\
            .options(joinedload(AnalysisResult.conversation))

        if sentiment_category:
            query = query.filter(AnalysisResult.sentiment_category == sentiment_category)

        if account_id is not None:
            query = query.filter(Conversation.account_id == account_id)

        query = query.order_by(desc(AnalysisResult.analyzed_at), desc(AnalysisResult.id))
        return self.paginate(query, pagination)

    def get_churn_statistics(self, account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Count scored conversations per churn risk level.

        Returns:
            One entry per level present: churn_risk_level, count, avg_score
        """
        try:
            query = self.session.query(
                AnalysisResult.churn_risk_level,
                func.count(AnalysisResult.id),
                func.avg(AnalysisResult.churn_risk_score)
            ).filter(AnalysisResult.churn_risk_level.isnot(None))

            if account_id is not None:
                query = query.join(
                    Conversation, Conversation.conversation_id == AnalysisResult.conversation_id
                ).filter(Conversation.account_id == account_id)

            rows = query.group_by(AnalysisResult.churn_risk_level).all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting churn statistics: {e}")
            raise

        return [
            {
                'churn_risk_level': level,
                'count': count,
                'avg_score': round(float(avg_score), 1) if avg_score is not None else None,
            }
            for level, count, avg_score in rows
        ]

    def find_high_risk(self, account_id: Optional[int] = None,
                       min_score: Optional[int] = None,
                       limit: int = 20) -> List[AnalysisResult]:
        """
        High churn-risk results, most recently scored first.

        Args:
            account_id: Only conversations in this account scope
            min_score: Additional lower bound on churn_risk_score
            limit: Maximum number of rows
        """
        query = self.session.query(AnalysisResult)\
            .join(Conversation, Conversation.conversation_id == AnalysisResult.conversation_id)\
            .options(joinedload(AnalysisResult.conversation))\
            .filter(AnalysisResult.churn_risk_level == 'high')

        if min_score is not None:
            query = query.filter(AnalysisResult.churn_risk_score >= min_score)

        if account_id is not None:
            query = query.filter(Conversation.account_id == account_id)

        return query.order_by(
            desc(AnalysisResult.churn_calculated_at),
            desc(AnalysisResult.churn_risk_score)
        ).limit(limit).all()
