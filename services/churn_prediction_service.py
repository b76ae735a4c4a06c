"""
ChurnPredictionService - Weighted multi-factor churn risk scoring
Scores a conversation 0-100 from five heuristic sub-scores (sentiment, repeat
contact, resolution, keywords, duration) and suggests follow-up actions
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from datetime import timedelta
from typing import List, Dict, Any, Optional, Mapping

from repositories.analysis_repository import AnalysisRepository
from repositories.conversation_repository import ConversationRepository
from services.common.exceptions import (
    ConversationNotFoundError,
    AnalysisNotFoundError,
    InvalidWeightsError
)
from services.common.result import Result
from services.enums import RiskLevel, Severity, RiskFactorName, RecommendedAction
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

REPEAT_CONTACT_WINDOW = timedelta(days=7)
EXTERNAL_ID_FRAGMENT_LENGTH = 5

RESOLVED_PHRASES = ('resolved', 'fixed', 'solved', 'thank you', 'thanks', 'appreciate')
UNRESOLVED_PHRASES = ('still', 'not working', 'unresolved', 'frustrated', 'disappointed')
HIGH_RISK_KEYWORDS = ('cancel', 'cancellation', 'competitor', 'switch', 'leave')
MEDIUM_RISK_KEYWORDS = ('disappointed', 'frustrated', 'angry', 'upset', 'terrible')

HIGH_RISK_THRESHOLD = 70
MEDIUM_RISK_THRESHOLD = 40

FACTOR_ACTIONS = (
    (RiskFactorName.CHURN_KEYWORDS, (RecommendedAction.RETENTION_OFFER, RecommendedAction.EXECUTIVE_REVIEW)),
    (RiskFactorName.REPEAT_CONTACT, (RecommendedAction.ROOT_CAUSE_ANALYSIS, RecommendedAction.PRIORITY_HANDLING)),
    (RiskFactorName.UNRESOLVED_ISSUE, (RecommendedAction.FOLLOW_UP_CALL, RecommendedAction.ISSUE_ESCALATION)),
    (RiskFactorName.NEGATIVE_SENTIMENT, (RecommendedAction.SENTIMENT_RECOVERY, RecommendedAction.CUSTOMER_FEEDBACK)),
)


@dataclass
class ChurnWeights:
    """Configuration for churn factor weights"""
    sentiment_weight: float = 0.30
    repeat_contact_weight: float = 0.25
    resolution_weight: float = 0.20
    keyword_weight: float = 0.15
    duration_weight: float = 0.10

    def validate(self) -> bool:
        """Ensure weights are non-negative and sum to 1.0"""
        weights = asdict(self).values()
        if any(weight < 0 for weight in weights):
            return False
        return abs(sum(weights) - 1.0) < 0.001

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, float]]) -> 'ChurnWeights':
        """
        Build weights from a partial mapping such as ``{'sentiment_weight': 0.4}``.

        Raises:
            InvalidWeightsError: Unknown key, or the result does not validate
        """
        weights = cls()
        for key, value in (overrides or {}).items():
            if not hasattr(weights, key):
                raise InvalidWeightsError(f"Unknown churn weight: {key}")
            setattr(weights, key, float(value))
        if not weights.validate():
            raise InvalidWeightsError(f"Churn weights must be non-negative and sum to 1.0: {asdict(weights)}")
        return weights


@dataclass
class RiskFactor:
    """A single reason a conversation is at risk"""
    factor: RiskFactorName
    severity: Severity
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'factor': self.factor.value,
            'severity': self.severity.value,
            'description': self.description,
        }


@dataclass
class FactorScores:
    """The five 0-100 sub-scores feeding the aggregate"""
    sentiment: int
    repeat_contact: int
    resolution: int
    keywords: int
    duration: int


@dataclass
class ChurnRiskResult:
    """Churn risk for one conversation"""
    score: int
    level: RiskLevel
    factors: List[RiskFactor] = field(default_factory=list)
    recommended_actions: List[RecommendedAction] = field(default_factory=list)
    factor_scores: Optional[FactorScores] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'level': self.level.value,
            'factors': [factor.to_dict() for factor in self.factors],
            'recommended_actions': [action.value for action in self.recommended_actions],
        }


# Risk factor evaluators. Each returns a sub-score and appends any fired
# factor to ``factors``; they are called in a fixed order so the factor list
# is stable.

def score_sentiment(overall_sentiment: Optional[float], factors: List[RiskFactor]) -> int:
    """Lower stored sentiment (0-1 scale) means higher risk; unknown is 50"""
    if overall_sentiment is None:
        return 50

    if overall_sentiment < 0.3:
        factors.append(RiskFactor(RiskFactorName.NEGATIVE_SENTIMENT, Severity.HIGH,
                                  'Very negative customer sentiment'))
        return 100
    if overall_sentiment < 0.5:
        factors.append(RiskFactor(RiskFactorName.NEGATIVE_SENTIMENT, Severity.MEDIUM,
                                  'Negative customer sentiment'))
        return 70
    if overall_sentiment < 0.6:
        return 40
    return 10


def score_repeat_contact(recent_contacts: Optional[int], factors: List[RiskFactor]) -> int:
    """
    Score other recent contacts from the same customer.

    Args:
        recent_contacts: Count of other conversations in the window, or None
            when the customer is unknown
    """
    if recent_contacts is None:
        return 30

    if recent_contacts >= 3:
        factors.append(RiskFactor(RiskFactorName.REPEAT_CONTACT, Severity.HIGH,
                                  f'{recent_contacts} contacts in last 7 days'))
        return 100
    if recent_contacts >= 2:
        factors.append(RiskFactor(RiskFactorName.REPEAT_CONTACT, Severity.MEDIUM,
                                  f'{recent_contacts} contacts in last 7 days'))
        return 70
    if recent_contacts == 1:
        return 40
    return 10


def score_resolution(transcript: Optional[str], factors: List[RiskFactor]) -> int:
    """Any resolution phrase wins over unresolved phrases"""
    text = (transcript or '').lower()
    resolved = any(phrase in text for phrase in RESOLVED_PHRASES)
    unresolved = any(phrase in text for phrase in UNRESOLVED_PHRASES)

    if resolved:
        return 10
    if unresolved:
        factors.append(RiskFactor(RiskFactorName.UNRESOLVED_ISSUE, Severity.HIGH,
                                  'Issue appears unresolved'))
        return 90
    return 50


def score_keywords(transcript: Optional[str], factors: List[RiskFactor]) -> int:
    text = (transcript or '').lower()
    high_risk = [keyword for keyword in HIGH_RISK_KEYWORDS if keyword in text]
    medium_risk = [keyword for keyword in MEDIUM_RISK_KEYWORDS if keyword in text]

    if high_risk:
        factors.append(RiskFactor(RiskFactorName.CHURN_KEYWORDS, Severity.HIGH,
                                  f"Mentioned: {', '.join(high_risk)}"))
        return 100
    if len(medium_risk) >= 2:
        factors.append(RiskFactor(RiskFactorName.NEGATIVE_KEYWORDS, Severity.MEDIUM,
                                  f"Mentioned: {', '.join(medium_risk)}"))
        return 70
    if len(medium_risk) == 1:
        return 40
    return 10


def score_duration(duration_minutes: Optional[float], factors: List[RiskFactor]) -> int:
    duration = duration_minutes or 0
    if duration > 30:
        factors.append(RiskFactor(RiskFactorName.LONG_DURATION, Severity.MEDIUM,
                                  f'{math.floor(duration + 0.5)} minute conversation'))
        return 80
    if duration > 15:
        return 50
    return 20


def aggregate_score(scores: FactorScores, weights: Optional[ChurnWeights] = None) -> int:
    """Weighted sum of the five sub-scores, rounded half up"""
    weights = weights or ChurnWeights()
    total = (
        scores.sentiment * weights.sentiment_weight
        + scores.repeat_contact * weights.repeat_contact_weight
        + scores.resolution * weights.resolution_weight
        + scores.keywords * weights.keyword_weight
        + scores.duration * weights.duration_weight
    )
    return int(math.floor(round(total, 6) + 0.5))


def classify_risk_level(score: int) -> RiskLevel:
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommend_actions(score: int, factors: List[RiskFactor]) -> List[RecommendedAction]:
    """
    Derive action codes from the aggregate score and the fired factors.

    High scores always get escalation and outreach; manager_review is added
    only for a high score where no factor produced an action of its own.
    """
    actions = []
    if score >= HIGH_RISK_THRESHOLD:
        actions.extend([RecommendedAction.ESCALATE_TO_SENIOR, RecommendedAction.PROACTIVE_OUTREACH])

    fired = {factor.factor for factor in factors}
    factor_actions = [
        action
        for name, mapped in FACTOR_ACTIONS if name in fired
        for action in mapped
    ]
    actions.extend(factor_actions)

    if score >= HIGH_RISK_THRESHOLD and not factor_actions:
        actions.append(RecommendedAction.MANAGER_REVIEW)

    return actions


class ChurnPredictionService:
    """Service for calculating and storing churn risk"""

    def __init__(self,
                 conversation_repository: ConversationRepository,
                 analysis_repository: AnalysisRepository,
                 weights: Optional[ChurnWeights] = None):
        """
        Initialize the churn prediction service.

        Args:
            conversation_repository: Repository for conversations
            analysis_repository: Repository for analysis results
            weights: Factor weights; defaults to 0.30/0.25/0.20/0.15/0.10

        Raises:
            InvalidWeightsError: If the weights do not validate
        """
        self.conversation_repository = conversation_repository
        self.analysis_repository = analysis_repository
        self.weights = weights or ChurnWeights()
        if not self.weights.validate():
            raise InvalidWeightsError(f"Churn weights must sum to 1.0: {asdict(self.weights)}")

    def calculate_churn_risk(self, conversation_id: str) -> ChurnRiskResult:
        """
        Calculate churn risk for a conversation without storing it.

        Raises:
            ConversationNotFoundError: Unknown conversation
            AnalysisNotFoundError: Conversation has not been analysed
        """
        conversation = self.conversation_repository.get_conversation_with_analysis(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        if conversation.analysis is None:
            raise AnalysisNotFoundError(conversation_id)

        factors: List[RiskFactor] = []
        scores = FactorScores(
            sentiment=score_sentiment(conversation.analysis.overall_sentiment, factors),
            repeat_contact=score_repeat_contact(self._count_recent_contacts(conversation), factors),
            resolution=score_resolution(conversation.transcript_details, factors),
            keywords=score_keywords(conversation.transcript_details, factors),
            duration=score_duration(conversation.duration_minutes, factors),
        )

        score = aggregate_score(scores, self.weights)
        return ChurnRiskResult(
            score=score,
            level=classify_risk_level(score),
            factors=factors,
            recommended_actions=recommend_actions(score, factors),
            factor_scores=scores,
        )

    def _count_recent_contacts(self, conversation) -> Optional[int]:
        # The last characters of the external id stand in for a customer key
        if not conversation.external_id:
            return None
        return self.conversation_repository.count_similar_external_id(
            conversation.external_id[-EXTERNAL_ID_FRAGMENT_LENGTH:],
            utc_now() - REPEAT_CONTACT_WINDOW,
            conversation.conversation_id
        )

    def score_conversation(self, conversation_id: str) -> ChurnRiskResult:
        """
        Calculate churn risk and persist it on the analysis row.

        Raises:
            NotFoundError: Conversation or analysis missing
        """
        result = self.calculate_churn_risk(conversation_id)
        self.analysis_repository.upsert_churn_result(
            conversation_id,
            result.score,
            result.level.value,
            [factor.to_dict() for factor in result.factors],
            [action.value for action in result.recommended_actions]
        )
        self.analysis_repository.commit()
        logger.info(f"Scored churn risk for {conversation_id}: {result.score} ({result.level.value})")
        return result

    def score_batch(self,
                    conversation_ids: Optional[List[str]] = None,
                    account_id: Optional[int] = None,
                    limit: int = 100) -> Result[Dict[str, Any]]:
        """
        Score many conversations one after another.

        A failure on one conversation is recorded and the batch carries on.

        Args:
            conversation_ids: Explicit conversations to score; when omitted,
                the most recent analysed conversations are used
            account_id: Restrict the default selection to one account
            limit: Maximum conversations when selecting by default

        Returns:
            Result with scored, total and errors
        """
        if conversation_ids:
            targets = list(conversation_ids)
        else:
            targets = [
                conversation.conversation_id
                for conversation in self.conversation_repository.list_conversations(
                    analyzed_only=True, account_id=account_id, limit=limit
                )
            ]

        scored = 0
        errors = []
        for conversation_id in targets:
            try:
                self.score_conversation(conversation_id)
                scored += 1
            except Exception as e:
                logger.error(f"Error scoring churn risk for {conversation_id}: {e}")
                self.analysis_repository.rollback()
                errors.append({'conversation_id': conversation_id, 'error': str(e)})

        return Result.success(
            {'scored': scored, 'total': len(targets), 'errors': errors},
            metadata={'failed': len(errors)}
        )

    def get_churn_statistics(self, account_id: Optional[int] = None) -> Dict[str, Any]:
        """Counts of scored conversations per risk level"""
        details = self.analysis_repository.get_churn_statistics(account_id)
        counts = {row['churn_risk_level']: row['count'] for row in details}
        return {
            RiskLevel.HIGH.value: counts.get(RiskLevel.HIGH.value, 0),
            RiskLevel.MEDIUM.value: counts.get(RiskLevel.MEDIUM.value, 0),
            RiskLevel.LOW.value: counts.get(RiskLevel.LOW.value, 0),
            'details': details,
        }

    def get_high_risk_conversations(self, account_id: Optional[int] = None,
                                    limit: int = 20) -> List[Dict[str, Any]]:
        results = self.analysis_repository.find_high_risk(account_id=account_id, limit=limit)
        return [
            {
                'conversation_id': analysis.conversation_id,
                'conversation_date': (
                    analysis.conversation.conversation_date.isoformat()
                    if analysis.conversation and analysis.conversation.conversation_date else None
                ),
                'churn_risk_level': analysis.churn_risk_level,
                'churn_risk_score': analysis.churn_risk_score,
                'churn_risk_factors': analysis.churn_risk_factors or [],
                'churn_recommended_actions': analysis.churn_recommended_actions or [],
            }
            for analysis in results
        ]
