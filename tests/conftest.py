# tests/conftest.py
"""
Shared fixtures for the pytest test suite.

Every test that asks for ``app`` gets a fresh application bound to an
in-memory SQLite database, so tests never see each other's rows.
"""
import os

# Must be set before app/celery_worker are imported anywhere
os.environ['FLASK_ENV'] = 'testing'
os.environ.setdefault('CELERY_BROKER_URL', 'memory://')
os.environ.setdefault('CELERY_RESULT_BACKEND', 'cache+memory://')

from datetime import timedelta

import pytest

from app import create_app
from extensions import db
from analytics_database import SentimentTrend
from utils.datetime_utils import utc_today
from tests.fixtures.helpers import create_test_conversation, create_test_analysis


@pytest.fixture
def app():
    """Fresh application and schema per test"""
    app = create_app(config_name='testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    """The application's scoped session"""
    return db.session


@pytest.fixture
def add_conversation(db_session):
    """Persist a conversation, optionally with its analysis row"""
    def _add(analysis=None, **kwargs):
        conversation = create_test_conversation(**kwargs)
        db_session.add(conversation)
        if analysis is not None:
            analysis = dict(analysis)
            analysis.setdefault('conversation_id', conversation.conversation_id)
            db_session.add(create_test_analysis(**analysis))
        db_session.commit()
        return conversation
    return _add


@pytest.fixture
def add_trend_rows(db_session):
    """Persist one stored trend row per sentiment, the last one dated today"""
    def _add(sentiments, account_id=None):
        today = utc_today()
        count = len(sentiments)
        for index, sentiment in enumerate(sentiments):
            db_session.add(SentimentTrend(
                date=today - timedelta(days=count - 1 - index),
                avg_sentiment=sentiment,
                conversation_count=10,
                positive_count=5,
                negative_count=2,
                neutral_count=3,
                account_id=account_id,
            ))
        db_session.commit()
    return _add
