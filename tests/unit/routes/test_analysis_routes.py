"""
Tests for the lexical analysis API endpoints
"""

import json
import pytest


TRANSCRIPT = json.dumps([
    {'speaker': 'Customer', 'text': 'My invoice is wrong', 'timestamp': '09:00'},
    {'speaker': 'Agent', 'text': 'Thank you, let me help with that invoice', 'timestamp': '09:01'},
    {'speaker': 'Customer', 'text': 'Thanks, that was great', 'timestamp': '09:04'},
])


class TestRunAnalysis:

    def test_analyzes_pending_conversations(self, client, add_conversation):
        add_conversation(conversation_id='c1', transcript_details=TRANSCRIPT)
        add_conversation(conversation_id='c2', transcript_details='Customer: hello')
        add_conversation(conversation_id='done', analysis={})

        response = client.post('/api/analysis/run', json={})

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['analyzed'] == 2
        assert data['total'] == 2
        assert data['errors'] == []

    def test_explicit_ids_report_unknown_conversations(self, client, add_conversation):
        add_conversation(conversation_id='c1', transcript_details=TRANSCRIPT)

        response = client.post('/api/analysis/run', json={'conversation_ids': ['c1', 'ghost']})

        data = response.get_json()
        assert data['analyzed'] == 1
        assert data['total'] == 2
        assert data['errors'] == [{'conversation_id': 'ghost', 'error': 'Conversation not found: ghost'}]

    def test_nothing_to_do(self, client):
        response = client.post('/api/analysis/run')

        assert response.status_code == 200
        assert response.get_json()['total'] == 0

    @pytest.mark.parametrize('body', [
        {'limit': 0},
        {'limit': 'many'},
        {'conversation_ids': 'c1'},
        {'conversation_ids': [1, 2]},
    ])
    def test_invalid_body(self, client, body):
        response = client.post('/api/analysis/run', json=body)

        assert response.status_code == 400
        assert 'error' in response.get_json()


class TestListResults:

    def test_results_are_paginated(self, client, add_conversation):
        add_conversation(conversation_id='c1', analysis={'sentiment_category': 'negative'})
        add_conversation(conversation_id='c2', analysis={'sentiment_category': 'positive'})

        response = client.get('/api/analysis/results?per_page=1')

        data = response.get_json()
        assert response.status_code == 200
        assert len(data['results']) == 1
        assert data['pagination']['total'] == 2
        assert data['pagination']['pages'] == 2

    def test_sentiment_filter(self, client, add_conversation):
        add_conversation(conversation_id='c1', analysis={'sentiment_category': 'negative'})
        add_conversation(conversation_id='c2', analysis={'sentiment_category': 'positive'})

        data = client.get('/api/analysis/results?sentiment=NEGATIVE').get_json()

        assert [r['conversation_id'] for r in data['results']] == ['c1']

    @pytest.mark.parametrize('query', ['sentiment=furious', 'page=0', 'account_id=x'])
    def test_invalid_query(self, client, query):
        assert client.get(f'/api/analysis/results?{query}').status_code == 400


def test_health_check(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['database'] == 'connected'
