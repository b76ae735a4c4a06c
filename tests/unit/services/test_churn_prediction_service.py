"""
Tests for ChurnPredictionService - factor evaluators, aggregation and actions
"""

import pytest
from unittest.mock import Mock
from types import SimpleNamespace

from repositories.analysis_repository import AnalysisRepository
from repositories.conversation_repository import ConversationRepository
from services.churn_prediction_service import (
    ChurnPredictionService,
    ChurnWeights,
    FactorScores,
    RiskFactor,
    aggregate_score,
    classify_risk_level,
    recommend_actions,
    score_sentiment,
    score_repeat_contact,
    score_resolution,
    score_keywords,
    score_duration,
)
from services.common.exceptions import (
    ConversationNotFoundError,
    AnalysisNotFoundError,
    InvalidWeightsError,
)
from services.enums import RiskLevel, Severity, RiskFactorName, RecommendedAction


def _conversation(sentiment=0.5, transcript='', external_id=None, duration=10,
                  conversation_id='conv-1', analysed=True):
    return SimpleNamespace(
        conversation_id=conversation_id,
        transcript_details=transcript,
        external_id=external_id,
        duration_minutes=duration,
        analysis=SimpleNamespace(overall_sentiment=sentiment) if analysed else None,
    )


class TestFactorEvaluators:

    @pytest.mark.parametrize('sentiment,expected', [
        (None, 50),
        (0.0, 100),
        (0.29, 100),
        (0.3, 70),
        (0.49, 70),
        (0.5, 40),
        (0.59, 40),
        (0.6, 10),
        (1.0, 10),
    ])
    def test_sentiment_scores(self, sentiment, expected):
        assert score_sentiment(sentiment, []) == expected

    def test_sentiment_factors(self):
        factors = []
        score_sentiment(0.2, factors)
        score_sentiment(0.4, factors)
        score_sentiment(0.55, factors)

        assert [(f.factor, f.severity) for f in factors] == [
            (RiskFactorName.NEGATIVE_SENTIMENT, Severity.HIGH),
            (RiskFactorName.NEGATIVE_SENTIMENT, Severity.MEDIUM),
        ]

    def test_sentiment_score_never_increases_with_sentiment(self):
        values = [i / 100 for i in range(101)]
        scores = [score_sentiment(value, []) for value in values]

        assert all(a >= b for a, b in zip(scores, scores[1:]))

    @pytest.mark.parametrize('contacts,expected', [
        (None, 30),
        (0, 10),
        (1, 40),
        (2, 70),
        (3, 100),
        (8, 100),
    ])
    def test_repeat_contact_scores(self, contacts, expected):
        assert score_repeat_contact(contacts, []) == expected

    def test_repeat_contact_factor_description(self):
        factors = []
        score_repeat_contact(3, factors)

        assert factors[0].to_dict() == {
            'factor': 'repeat_contact',
            'severity': 'high',
            'description': '3 contacts in last 7 days',
        }

    def test_resolution_phrase_wins_over_unresolved(self):
        factors = []

        assert score_resolution('Still broken but resolved now', factors) == 10
        assert factors == []

    def test_unresolved_issue(self):
        factors = []

        assert score_resolution('It is not working', factors) == 90
        assert factors[0].factor == RiskFactorName.UNRESOLVED_ISSUE

    def test_resolution_unknown(self):
        assert score_resolution('Hello', []) == 50
        assert score_resolution(None, []) == 50

    def test_high_risk_keywords(self):
        factors = []

        assert score_keywords('I want to CANCEL and switch', factors) == 100
        assert factors[0].description == 'Mentioned: cancel, switch'

    def test_two_medium_keywords(self):
        factors = []

        assert score_keywords('I am upset and frustrated', factors) == 70
        assert factors[0].factor == RiskFactorName.NEGATIVE_KEYWORDS
        assert factors[0].severity == Severity.MEDIUM

    def test_single_medium_keyword_and_none(self):
        assert score_keywords('I am upset', []) == 40
        assert score_keywords('All good', []) == 10

    @pytest.mark.parametrize('duration,expected', [
        (None, 20),
        (15, 20),
        (15.5, 50),
        (30, 50),
        (31, 80),
    ])
    def test_duration_scores(self, duration, expected):
        assert score_duration(duration, []) == expected

    def test_long_duration_factor_rounds_minutes(self):
        factors = []
        score_duration(45.5, factors)

        assert factors[0].description == '46 minute conversation'


class TestAggregation:

    def test_all_maximum_scores_give_100(self):
        assert aggregate_score(FactorScores(100, 100, 100, 100, 100)) == 100

    def test_all_zero_scores_give_0(self):
        assert aggregate_score(FactorScores(0, 0, 0, 0, 0)) == 0

    def test_weighted_sum_rounds_half_up(self):
        # 0.3*50 + 0.25*30 + 0.2*10 + 0.15*10 + 0.1*20 = 28.0
        assert aggregate_score(FactorScores(50, 30, 10, 10, 20)) == 28
        # 0.3*100 + 0.25*30 + 0.2*10 + 0.15*10 + 0.1*20 = 43.0
        assert aggregate_score(FactorScores(100, 30, 10, 10, 20)) == 43
        # 0.1 * 5 = 0.5 rounds up
        assert aggregate_score(FactorScores(0, 0, 0, 0, 5)) == 1

    @pytest.mark.parametrize('score,level', [
        (100, RiskLevel.HIGH),
        (70, RiskLevel.HIGH),
        (69, RiskLevel.MEDIUM),
        (40, RiskLevel.MEDIUM),
        (39, RiskLevel.LOW),
        (0, RiskLevel.LOW),
    ])
    def test_risk_level_thresholds(self, score, level):
        assert classify_risk_level(score) == level


class TestRecommendedActions:

    def test_high_score_without_factor_actions_gets_manager_review(self):
        assert recommend_actions(75, []) == [
            RecommendedAction.ESCALATE_TO_SENIOR,
            RecommendedAction.PROACTIVE_OUTREACH,
            RecommendedAction.MANAGER_REVIEW,
        ]

    def test_factor_actions_follow_fixed_order(self):
        factors = [
            RiskFactor(RiskFactorName.NEGATIVE_SENTIMENT, Severity.HIGH, ''),
            RiskFactor(RiskFactorName.UNRESOLVED_ISSUE, Severity.HIGH, ''),
        ]

        assert recommend_actions(50, factors) == [
            RecommendedAction.FOLLOW_UP_CALL,
            RecommendedAction.ISSUE_ESCALATION,
            RecommendedAction.SENTIMENT_RECOVERY,
            RecommendedAction.CUSTOMER_FEEDBACK,
        ]

    def test_low_score_without_factors_has_no_actions(self):
        assert recommend_actions(20, []) == []

    def test_factors_without_mapped_actions(self):
        factors = [RiskFactor(RiskFactorName.LONG_DURATION, Severity.MEDIUM, '')]

        assert recommend_actions(30, factors) == []


class TestChurnWeights:

    def test_defaults_validate(self):
        assert ChurnWeights().validate() is True

    def test_weights_not_summing_to_one_fail(self):
        assert ChurnWeights(sentiment_weight=0.5).validate() is False

    def test_negative_weight_fails(self):
        weights = ChurnWeights(sentiment_weight=-0.1, repeat_contact_weight=0.65)

        assert weights.validate() is False

    def test_from_mapping_override(self):
        weights = ChurnWeights.from_mapping({'sentiment_weight': 0.4, 'duration_weight': 0.0})

        assert weights.sentiment_weight == 0.4
        assert weights.duration_weight == 0.0

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(InvalidWeightsError):
            ChurnWeights.from_mapping({'tone_weight': 0.1})

    def test_from_mapping_rejects_invalid_sum(self):
        with pytest.raises(InvalidWeightsError):
            ChurnWeights.from_mapping({'sentiment_weight': 0.9})

    def test_service_rejects_invalid_weights(self):
        with pytest.raises(InvalidWeightsError):
            ChurnPredictionService(Mock(), Mock(), weights=ChurnWeights(sentiment_weight=0.9))


class TestChurnPredictionService:

    @pytest.fixture
    def conversation_repository(self):
        repository = Mock(spec=ConversationRepository)
        repository.count_similar_external_id.return_value = 0
        return repository

    @pytest.fixture
    def analysis_repository(self):
        return Mock(spec=AnalysisRepository)

    @pytest.fixture
    def service(self, conversation_repository, analysis_repository):
        return ChurnPredictionService(
            conversation_repository=conversation_repository,
            analysis_repository=analysis_repository
        )

    def test_negative_sentiment_without_customer_key(self, service, conversation_repository):
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(
            sentiment=0.2, transcript='Customer: thanks for the call', duration=10
        )

        result = service.calculate_churn_risk('conv-1')

        assert result.score == 43
        assert result.level == RiskLevel.MEDIUM
        assert [f.factor for f in result.factors] == [RiskFactorName.NEGATIVE_SENTIMENT]
        assert result.recommended_actions == [
            RecommendedAction.SENTIMENT_RECOVERY,
            RecommendedAction.CUSTOMER_FEEDBACK,
        ]
        conversation_repository.count_similar_external_id.assert_not_called()

    def test_cancellation_threat_with_repeat_contacts(self, service, conversation_repository):
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(
            sentiment=0.1,
            transcript='Customer: I want to cancel my plan',
            external_id='CRM-000123',
            duration=45
        )
        conversation_repository.count_similar_external_id.return_value = 3

        result = service.calculate_churn_risk('conv-1')

        assert result.score == 88
        assert result.level == RiskLevel.HIGH
        assert [f.factor for f in result.factors] == [
            RiskFactorName.NEGATIVE_SENTIMENT,
            RiskFactorName.REPEAT_CONTACT,
            RiskFactorName.CHURN_KEYWORDS,
            RiskFactorName.LONG_DURATION,
        ]
        assert [a.value for a in result.recommended_actions] == [
            'escalate_to_senior',
            'proactive_outreach',
            'retention_offer',
            'executive_review',
            'root_cause_analysis',
            'priority_handling',
            'sentiment_recovery',
            'customer_feedback',
        ]

        fragment, since, excluded = conversation_repository.count_similar_external_id.call_args[0]
        assert fragment == '00123'
        assert excluded == 'conv-1'
        assert since.tzinfo is not None

    def test_score_is_deterministic(self, service, conversation_repository):
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(
            sentiment=0.45, transcript='Customer: still upset', external_id='X1', duration=20
        )
        conversation_repository.count_similar_external_id.return_value = 2

        first = service.calculate_churn_risk('conv-1')
        second = service.calculate_churn_risk('conv-1')

        assert first.to_dict() == second.to_dict()
        assert 0 <= first.score <= 100

    def test_unknown_conversation(self, service, conversation_repository):
        conversation_repository.get_conversation_with_analysis.return_value = None

        with pytest.raises(ConversationNotFoundError):
            service.calculate_churn_risk('missing')

    def test_conversation_without_analysis(self, service, conversation_repository):
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(analysed=False)

        with pytest.raises(AnalysisNotFoundError) as exc_info:
            service.calculate_churn_risk('conv-1')

        assert exc_info.value.conversation_id == 'conv-1'

    def test_custom_weights_change_the_score(self, conversation_repository, analysis_repository):
        service = ChurnPredictionService(
            conversation_repository, analysis_repository,
            weights=ChurnWeights(1.0, 0.0, 0.0, 0.0, 0.0)
        )
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(sentiment=0.1)

        assert service.calculate_churn_risk('conv-1').score == 100

    def test_score_conversation_persists_and_commits(self, service, conversation_repository,
                                                     analysis_repository):
        conversation_repository.get_conversation_with_analysis.return_value = _conversation(
            sentiment=0.2, transcript='thanks', duration=10
        )

        result = service.score_conversation('conv-1')

        analysis_repository.upsert_churn_result.assert_called_once_with(
            'conv-1',
            43,
            'medium',
            [{'factor': 'negative_sentiment', 'severity': 'high',
              'description': 'Very negative customer sentiment'}],
            ['sentiment_recovery', 'customer_feedback']
        )
        analysis_repository.commit.assert_called_once()
        assert result.to_dict()['level'] == 'medium'

    def test_score_batch_records_failures_and_continues(self, service, conversation_repository,
                                                        analysis_repository):
        conversation_repository.get_conversation_with_analysis.side_effect = [
            _conversation(conversation_id='a'),
            None,
            _conversation(conversation_id='c'),
        ]

        result = service.score_batch(conversation_ids=['a', 'b', 'c'])

        assert result.is_success
        assert result.data['scored'] == 2
        assert result.data['total'] == 3
        assert result.data['errors'] == [
            {'conversation_id': 'b', 'error': 'Conversation not found: b'}
        ]
        analysis_repository.rollback.assert_called_once()

    def test_score_batch_defaults_to_recent_analysed(self, service, conversation_repository):
        conversation_repository.list_conversations.return_value = []

        result = service.score_batch(account_id=7, limit=5)

        conversation_repository.list_conversations.assert_called_once_with(
            analyzed_only=True, account_id=7, limit=5
        )
        assert result.data == {'scored': 0, 'total': 0, 'errors': []}

    def test_churn_statistics_fill_missing_levels(self, service, analysis_repository):
        analysis_repository.get_churn_statistics.return_value = [
            {'churn_risk_level': 'high', 'count': 2, 'avg_score': 81.5}
        ]

        stats = service.get_churn_statistics()

        assert stats['high'] == 2
        assert stats['medium'] == 0
        assert stats['low'] == 0
        assert len(stats['details']) == 1
