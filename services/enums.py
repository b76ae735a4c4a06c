"""
Service layer enums
These enums are used by services and repositories so that categorical values
are produced once and compared explicitly, never by substring tests on labels
"""

from enum import Enum
from typing import List


class SentimentPolarity(str, Enum):
    """Direction of a sentiment category"""
    POSITIVE = 'positive'
    NEGATIVE = 'negative'
    NEUTRAL = 'neutral'


class SentimentCategory(str, Enum):
    """Five-bucket sentiment category assigned by the transcript analyzer"""
    VERY_POSITIVE = 'very_positive'
    POSITIVE = 'positive'
    NEUTRAL = 'neutral'
    NEGATIVE = 'negative'
    VERY_NEGATIVE = 'very_negative'

    @property
    def label(self) -> str:
        """Display label, e.g. 'Very Positive'"""
        return self.value.replace('_', ' ').title()

    @property
    def polarity(self) -> SentimentPolarity:
        if self in (SentimentCategory.VERY_POSITIVE, SentimentCategory.POSITIVE):
            return SentimentPolarity.POSITIVE
        if self in (SentimentCategory.VERY_NEGATIVE, SentimentCategory.NEGATIVE):
            return SentimentPolarity.NEGATIVE
        return SentimentPolarity.NEUTRAL

    @classmethod
    def from_raw_score(cls, raw_score: float) -> 'SentimentCategory':
        """Bucket an unnormalised lexicon score"""
        if raw_score > 2:
            return cls.VERY_POSITIVE
        if raw_score > 0:
            return cls.POSITIVE
        if raw_score < -2:
            return cls.VERY_NEGATIVE
        if raw_score < 0:
            return cls.NEGATIVE
        return cls.NEUTRAL

    @classmethod
    def with_polarity(cls, polarity: SentimentPolarity) -> List['SentimentCategory']:
        return [category for category in cls if category.polarity == polarity]


class RiskLevel(str, Enum):
    """Discrete churn risk level"""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class Severity(str, Enum):
    """Severity of a single churn risk factor"""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class RiskFactorName(str, Enum):
    """Names of churn risk factors"""
    NEGATIVE_SENTIMENT = 'negative_sentiment'
    REPEAT_CONTACT = 'repeat_contact'
    UNRESOLVED_ISSUE = 'unresolved_issue'
    CHURN_KEYWORDS = 'churn_keywords'
    NEGATIVE_KEYWORDS = 'negative_keywords'
    LONG_DURATION = 'long_duration'


class RecommendedAction(str, Enum):
    """Action codes suggested for at-risk conversations"""
    ESCALATE_TO_SENIOR = 'escalate_to_senior'
    PROACTIVE_OUTREACH = 'proactive_outreach'
    RETENTION_OFFER = 'retention_offer'
    EXECUTIVE_REVIEW = 'executive_review'
    ROOT_CAUSE_ANALYSIS = 'root_cause_analysis'
    PRIORITY_HANDLING = 'priority_handling'
    FOLLOW_UP_CALL = 'follow_up_call'
    ISSUE_ESCALATION = 'issue_escalation'
    SENTIMENT_RECOVERY = 'sentiment_recovery'
    CUSTOMER_FEEDBACK = 'customer_feedback'
    MANAGER_REVIEW = 'manager_review'


class TrendDirection(str, Enum):
    """Direction of sentiment between two periods"""
    IMPROVING = 'improving'
    DECLINING = 'declining'
    STABLE = 'stable'
    INSUFFICIENT_DATA = 'insufficient_data'


class AnomalyType(str, Enum):
    """Whether an anomalous day was above or below its trailing window"""
    SPIKE = 'spike'
    DROP = 'drop'
