# analytics_database.py

from extensions import db
from utils.datetime_utils import utc_now


# --- Conversation Model ---
class Conversation(db.Model):
    """An uploaded customer-service transcript. Read-only for the analytics core."""
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    transcript_details = db.Column(db.Text, nullable=True)
    conversation_date = db.Column(db.DateTime, nullable=True, index=True)
    external_id = db.Column(db.String(100), nullable=True, index=True)  # Customer reference from the source system
    duration_minutes = db.Column(db.Float, nullable=True)
    message_count = db.Column(db.Integer, nullable=True)
    account_id = db.Column(db.Integer, nullable=True, index=True)
    uploaded_at = db.Column(db.DateTime, default=utc_now)

    analysis = db.relationship(
        'AnalysisResult',
        back_populates='conversation',
        uselist=False,
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Conversation {self.conversation_id}>'


# --- AnalysisResult Model ---
class AnalysisResult(db.Model):
    """Lexical analysis plus the latest churn-risk score for one conversation"""
    __tablename__ = 'analysis_results'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.String(100),
        db.ForeignKey('conversations.conversation_id'),
        unique=True,
        nullable=False,
        index=True
    )

    # Lexical analysis
    overall_sentiment = db.Column(db.Float, nullable=True)  # 0.0-1.0, below 0.5 is negative
    sentiment_label = db.Column(db.String(20), nullable=True)  # 'Very Positive' ... 'Very Negative'
    sentiment_category = db.Column(db.String(20), nullable=True, index=True)  # SentimentCategory value
    positive_messages = db.Column(db.Integer, nullable=False, default=0)
    negative_messages = db.Column(db.Integer, nullable=False, default=0)
    neutral_messages = db.Column(db.Integer, nullable=False, default=0)
    keywords = db.Column(db.JSON, nullable=True)
    avg_message_length = db.Column(db.Float, nullable=True)
    avg_response_time = db.Column(db.Float, nullable=True)  # minutes
    agent_performance_score = db.Column(db.Integer, nullable=True)
    customer_satisfaction_score = db.Column(db.Integer, nullable=True)
    message_count = db.Column(db.Integer, nullable=False, default=0)
    analyzed_at = db.Column(db.DateTime, default=utc_now)

    # Churn risk
    churn_risk_score = db.Column(db.Integer, nullable=True, index=True)
    churn_risk_level = db.Column(db.String(10), nullable=True, index=True)  # 'low', 'medium', 'high'
    churn_risk_factors = db.Column(db.JSON, nullable=True)
    churn_recommended_actions = db.Column(db.JSON, nullable=True)
    churn_calculated_at = db.Column(db.DateTime, nullable=True)

    conversation = db.relationship('Conversation', back_populates='analysis')

    def to_dict(self):
        return {
            'conversation_id': self.conversation_id,
            'overall_sentiment': self.overall_sentiment,
            'sentiment_label': self.sentiment_label,
            'sentiment_category': self.sentiment_category,
            'positive_messages': self.positive_messages,
            'negative_messages': self.negative_messages,
            'neutral_messages': self.neutral_messages,
            'keywords': self.keywords or [],
            'avg_message_length': self.avg_message_length,
            'avg_response_time': self.avg_response_time,
            'agent_performance_score': self.agent_performance_score,
            'customer_satisfaction_score': self.customer_satisfaction_score,
            'message_count': self.message_count,
            'analyzed_at': self.analyzed_at.isoformat() if self.analyzed_at else None,
            'churn_risk_score': self.churn_risk_score,
            'churn_risk_level': self.churn_risk_level,
            'churn_risk_factors': self.churn_risk_factors or [],
            'churn_recommended_actions': self.churn_recommended_actions or [],
        }

    def __repr__(self):
        return f'<AnalysisResult {self.conversation_id} sentiment={self.overall_sentiment}>'


# --- SentimentTrend Model ---
class SentimentTrend(db.Model):
    """One day of aggregated sentiment for an account scope (NULL = all accounts)"""
    __tablename__ = 'sentiment_trends'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    avg_sentiment = db.Column(db.Float, nullable=False, default=0)
    conversation_count = db.Column(db.Integer, nullable=False, default=0)
    positive_count = db.Column(db.Integer, nullable=False, default=0)
    negative_count = db.Column(db.Integer, nullable=False, default=0)
    neutral_count = db.Column(db.Integer, nullable=False, default=0)
    account_id = db.Column(db.Integer, nullable=True, index=True)
    calculated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    # Unique constraint - one row per day per account
    __table_args__ = (
        db.UniqueConstraint('date', 'account_id', name='unique_trend_date_account'),
    )

    def __repr__(self):
        return f'<SentimentTrend {self.date} avg={self.avg_sentiment}>'
