"""
Model builders and date helpers shared by the test suite
"""
from datetime import datetime, timedelta

from analytics_database import Conversation, AnalysisResult
from utils.datetime_utils import utc_now, to_naive_utc


def create_test_conversation(**kwargs):
    """
    Build a Conversation with sensible defaults.
    Used across multiple test files.
    """
    defaults = {
        'conversation_id': 'conv-1',
        'transcript_details': 'Customer: Hello\nAgent: Hi, how can I help?',
        'conversation_date': to_naive_utc(utc_now()),
        'external_id': None,
        'duration_minutes': 10,
        'account_id': 1,
    }
    defaults.update(kwargs)
    return Conversation(**defaults)


def create_test_analysis(**kwargs):
    """Build an AnalysisResult with neutral defaults"""
    defaults = {
        'conversation_id': 'conv-1',
        'overall_sentiment': 0.5,
        'sentiment_label': 'Neutral',
        'sentiment_category': 'neutral',
        'positive_messages': 0,
        'negative_messages': 0,
        'neutral_messages': 1,
        'keywords': [],
        'message_count': 1,
        'analyzed_at': to_naive_utc(utc_now()),
    }
    defaults.update(kwargs)
    return AnalysisResult(**defaults)


def days_ago(days, hour=12):
    """Naive UTC datetime at ``hour`` o'clock ``days`` calendar days ago"""
    day = utc_now().date() - timedelta(days=days)
    return datetime(day.year, day.month, day.day, hour)
