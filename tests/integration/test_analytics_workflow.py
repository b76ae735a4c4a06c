"""
End-to-end workflow: analyse transcripts, score churn risk and build trends
through the HTTP API
"""

import json

from analytics_database import AnalysisResult
from tests.fixtures.helpers import days_ago


HAPPY = json.dumps([
    {'speaker': 'Customer', 'text': 'The new plan works great, thank you', 'timestamp': '10:00'},
    {'speaker': 'Agent', 'text': 'Happy to help, please call again', 'timestamp': '10:01'},
])

ANGRY = (
    "[14:00] Customer: This is terrible and I am frustrated, the router is still not working\n"
    "[14:03] Agent: I understand, let me check\n"
    "[14:20] Customer: I will cancel and go to a competitor"
)


def test_full_workflow(client, add_conversation, db_session):
    for day in range(10):
        add_conversation(conversation_id=f'happy-{day}', transcript_details=HAPPY,
                         conversation_date=days_ago(day), account_id=1, duration_minutes=5)
    add_conversation(conversation_id='angry', transcript_details=ANGRY, external_id='ACME-55501',
                     conversation_date=days_ago(0), account_id=1, duration_minutes=40)
    add_conversation(conversation_id='angry-earlier', transcript_details=ANGRY, external_id='ACME-55501',
                     conversation_date=days_ago(2), account_id=1, duration_minutes=20)

    analysis = client.post('/api/analysis/run').get_json()
    assert analysis['analyzed'] == 12
    assert analysis['errors'] == []

    results = client.get('/api/analysis/results?per_page=100').get_json()['results']
    by_id = {r['conversation_id']: r for r in results}
    assert by_id['happy-0']['overall_sentiment'] > 0.5
    assert by_id['angry']['overall_sentiment'] < 0.5
    assert by_id['angry']['message_count'] == 3
    assert by_id['angry']['avg_response_time'] == 10.0

    churn = client.get('/api/churn/angry').get_json()
    assert churn['level'] == 'high'
    factors = {f['factor'] for f in churn['factors']}
    assert {'churn_keywords', 'unresolved_issue', 'long_duration'} <= factors

    batch = client.post('/api/churn/batch', json={'account_id': 1}).get_json()
    assert batch['scored'] == 12

    overview = client.get('/api/churn?account_id=1').get_json()
    assert overview['statistics']['high'] >= 1
    assert 'angry' in [c['conversation_id'] for c in overview['conversations']]

    recompute = client.post('/api/trends/recompute', json={'account_id': 1}).get_json()
    assert recompute['updated'] == 10

    report = client.get('/api/trends?account_id=1').get_json()
    assert len(report['historical']) == 10
    assert len(report['forecast']) == 7
    assert report['insights']['trend'] in {'improving', 'declining', 'stable'}

    today = report['historical'][-1]
    assert today['conversation_count'] == 2
    assert today['positive_count'] + today['negative_count'] + today['neutral_count'] == 2

    # Re-analysis invalidates the stored churn score
    client.post('/api/analysis/run', json={'conversation_ids': ['angry']})
    db_session.expire_all()
    assert db_session.query(AnalysisResult).filter_by(conversation_id='angry').one().churn_risk_score is None
