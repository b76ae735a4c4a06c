"""
Tests for the sentiment trend API endpoints
"""

import pytest

from analytics_database import SentimentTrend
from tests.fixtures.helpers import days_ago


class TestGetTrends:

    def test_report_from_stored_rows(self, client, add_trend_rows):
        add_trend_rows([0.6] * 14)

        response = client.get('/api/trends')

        assert response.status_code == 200
        report = response.get_json()
        assert len(report['historical']) == 14
        assert len(report['forecast']) == 7
        assert report['forecast'][0]['confidence'] == 0.95
        assert report['anomalies'] == []
        assert report['insights']['trend'] == 'stable'

    def test_account_scope_and_window(self, client, add_trend_rows):
        add_trend_rows([0.5] * 20, account_id=9)
        add_trend_rows([0.5] * 3)

        scoped = client.get('/api/trends?account_id=9&days=10').get_json()
        unscoped = client.get('/api/trends').get_json()

        assert len(scoped['historical']) == 11
        assert len(unscoped['historical']) == 3
        assert unscoped['forecast'] == []
        assert unscoped['insights'] == {
            'trend': 'insufficient_data',
            'change_percent': 0,
            'message': 'Not enough data to generate insights',
        }

    @pytest.mark.parametrize('query', ['days=0', 'days=week', 'account_id=me'])
    def test_invalid_query(self, client, query):
        assert client.get(f'/api/trends?{query}').status_code == 400


class TestRecompute:

    def test_recompute_is_idempotent(self, client, add_conversation, db_session):
        add_conversation(conversation_id='a', conversation_date=days_ago(1),
                         analysis={'overall_sentiment': 0.7, 'sentiment_category': 'positive'})
        add_conversation(conversation_id='b', conversation_date=days_ago(3),
                         analysis={'overall_sentiment': 0.3, 'sentiment_category': 'negative'})

        first = client.post('/api/trends/recompute', json={}).get_json()
        second = client.post('/api/trends/recompute', json={'days': 30}).get_json()

        assert first == {'success': True, 'updated': 2}
        assert second == {'success': True, 'updated': 2}
        assert db_session.query(SentimentTrend).count() == 2
        assert db_session.query(SentimentTrend).filter(SentimentTrend.account_id.is_(None)).count() == 2

    def test_recompute_for_account(self, client, add_conversation, db_session):
        add_conversation(conversation_id='a', account_id=5, conversation_date=days_ago(1),
                         analysis={'overall_sentiment': 0.7, 'sentiment_category': 'positive'})
        add_conversation(conversation_id='b', account_id=6, conversation_date=days_ago(1),
                         analysis={'overall_sentiment': 0.3, 'sentiment_category': 'negative'})

        response = client.post('/api/trends/recompute', json={'account_id': 5})

        assert response.get_json()['updated'] == 1
        row = db_session.query(SentimentTrend).one()
        assert row.account_id == 5
        assert row.avg_sentiment == pytest.approx(0.7)
        assert row.positive_count == 1

    def test_recompute_rejects_invalid_days(self, client):
        assert client.post('/api/trends/recompute', json={'days': 0}).status_code == 400

    @pytest.mark.parametrize('body', [[1], 'recompute', 7])
    def test_recompute_rejects_non_object_body(self, client, body):
        response = client.post('/api/trends/recompute', json=body)

        assert response.status_code == 400
        assert response.get_json() == {'error': 'Request body must be a JSON object'}
