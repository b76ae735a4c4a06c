"""
SentimentTrendRepository - Daily sentiment aggregates per account scope
"""

from dataclasses import dataclass, asdict
from datetime import date
from typing import List, Optional, Dict, Any
from sqlalchemy import func, case
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from analytics_database import SentimentTrend, AnalysisResult, Conversation
from services.enums import SentimentCategory, SentimentPolarity
from utils.datetime_utils import start_of_day, end_of_day, coerce_date
import logging

logger = logging.getLogger(__name__)


@dataclass
class DailyTrendPoint:
    """One calendar day of aggregated sentiment"""
    date: date
    avg_sentiment: float
    conversation_count: int
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return data


def _polarity_counter(polarity: SentimentPolarity):
    categories = [category.value for category in SentimentCategory.with_polarity(polarity)]
    return func.sum(case((AnalysisResult.sentiment_category.in_(categories), 1), else_=0))


class SentimentTrendRepository(BaseRepository[SentimentTrend]):
    """Repository for SentimentTrend data access"""

    def __init__(self, session: Session):
        """Initialize repository with database session"""
        super().__init__(session, SentimentTrend)

    def aggregate_daily_sentiment(self,
                                  account_id: Optional[int] = None,
                                  start_date: Optional[date] = None,
                                  end_date: Optional[date] = None) -> List[DailyTrendPoint]:
        """
        Group analysed conversations by calendar day of conversation_date.

        Days without conversations are absent from the result, so the series
        is sparse.

        Args:
            account_id: Restrict to one account scope
            start_date: First day to include
            end_date: Last day to include

        Returns:
            DailyTrendPoint per day, oldest first
        """
        day = func.date(Conversation.conversation_date)

        query = self.session.query(
            day.label('day'),
            func.avg(AnalysisResult.overall_sentiment),
            func.count(AnalysisResult.id),
            _polarity_counter(SentimentPolarity.POSITIVE),
            _polarity_counter(SentimentPolarity.NEGATIVE),
            _polarity_counter(SentimentPolarity.NEUTRAL),
        ).select_from(AnalysisResult).join(
            Conversation, Conversation.conversation_id == AnalysisResult.conversation_id
        ).filter(
            Conversation.conversation_date.isnot(None),
            AnalysisResult.overall_sentiment.isnot(None)
        )

        if account_id is not None:
            query = query.filter(Conversation.account_id == account_id)
        if start_date is not None:
            query = query.filter(Conversation.conversation_date >= start_of_day(start_date))
        if end_date is not None:
            query = query.filter(Conversation.conversation_date <= end_of_day(end_date))

        try:
            rows = query.group_by(day).order_by(day).all()
        except SQLAlchemyError as e:
            logger.error(f"Error aggregating daily sentiment: {e}")
            raise

        return [
            DailyTrendPoint(
                date=coerce_date(row_day),
                avg_sentiment=float(avg_sentiment),
                conversation_count=int(count),
                positive_count=int(positive or 0),
                negative_count=int(negative or 0),
                neutral_count=int(neutral or 0),
            )
            for row_day, avg_sentiment, count, positive, negative, neutral in rows
        ]

    def _find_trend(self, day: date, account_id: Optional[int]) -> Optional[SentimentTrend]:
        query = self.session.query(SentimentTrend).filter(SentimentTrend.date == day)
        if account_id is None:
            query = query.filter(SentimentTrend.account_id.is_(None))
        else:
            query = query.filter(SentimentTrend.account_id == account_id)
        return query.first()

    def upsert_daily_trend(self, day: date, account_id: Optional[int],
                           stats: DailyTrendPoint) -> SentimentTrend:
        """
        Replace the stored trend row for (day, account_id), creating it if needed.

        A NULL account is matched with IS NULL, so recomputing the unscoped
        series never duplicates rows.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        values = {
            'avg_sentiment': stats.avg_sentiment,
            'conversation_count': stats.conversation_count,
            'positive_count': stats.positive_count,
            'negative_count': stats.negative_count,
            'neutral_count': stats.neutral_count,
        }

        existing = self._find_trend(day, account_id)
        if existing is None:
            return self.create(date=day, account_id=account_id, **values)
        return self.update(existing, **values)

    def query_daily_trends(self,
                           account_id: Optional[int] = None,
                           start_date: Optional[date] = None,
                           end_date: Optional[date] = None) -> List[DailyTrendPoint]:
        """Stored trend rows for an account scope, oldest first"""
        query = self.session.query(SentimentTrend)

        if account_id is None:
            query = query.filter(SentimentTrend.account_id.is_(None))
        else:
            query = query.filter(SentimentTrend.account_id == account_id)
        if start_date is not None:
            query = query.filter(SentimentTrend.date >= start_date)
        if end_date is not None:
            query = query.filter(SentimentTrend.date <= end_date)

        return [
            DailyTrendPoint(
                date=trend.date,
                avg_sentiment=trend.avg_sentiment,
                conversation_count=trend.conversation_count,
                positive_count=trend.positive_count,
                negative_count=trend.negative_count,
                neutral_count=trend.neutral_count,
            )
            for trend in query.order_by(SentimentTrend.date).all()
        ]
