"""
TranscriptAnalyzerService - Lexical analysis of customer-service transcripts
Parses a transcript into speaker-tagged messages and scores sentiment,
keywords, response timing, agent performance and customer satisfaction
"""

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

from afinn import Afinn

from services.enums import SentimentCategory

logger = logging.getLogger(__name__)

SPEAKER_LINE = re.compile(
    r'^(?:\[?(\d{1,2}:\d{2}(?::\d{2})?)\]?\s*)?-?\s*(Agent|Customer|User|Support):\s*(.+)$',
    re.IGNORECASE
)
TIMESTAMP = re.compile(r'(\d{1,2}):(\d{2})(?::(\d{2}))?')
WORD = re.compile(r'[a-z0-9_]+')

# Generic support vocabulary that appears in every conversation
STOP_WORDS = frozenset("""
the is at which on and a an as are was were been be have has had do does did will would could
should may might can this that these those i you he she it we they what who when where why how
for with from to of in out up down but or not no yes if then than so just now very too also only
some all any both each few more most other such own same here there about after before between
into through during above below off over under again further once while because until since
though although unless whether either neither nor yet still even ever never
agent customer support user representative rep team member staff
hello hi hey greetings welcome goodbye bye farewell later cheers
thanks thank please sorry apologize apologies excuse pardon appreciate appreciated appreciation
grateful gratitude welcomed
help helped helping helps assist assisted assisting assists assistance
call called calling calls contact contacted contacting contacts speak spoke speaking speaks talk
talked talking talks tell told say said saying says ask asked asking asks answer answered reply
replied respond responded chat chatting message messaging
understand understood understanding understands see saw seen seeing know knew known knowing knows
aware realize realized
need needed needing needs want wanted wanting wants wish wished like liked prefer preferred
get got getting gets gotten receive received receiving give gave given giving gives take took
taken taking takes make made making makes put putting
come came coming comes go went going goes gone use used using uses try tried trying tries
attempt attempted
okay ok alright fine sure certainly definitely absolutely right correct exactly yeah yep yup
nope nah
well really actually basically literally honestly truly quite rather pretty fairly somewhat kind
sort type probably possibly maybe perhaps hopefully
good better best great excellent wonderful perfect amazing bad worse worst terrible awful horrible
poor new old different similar easy hard difficult
my your his her its our their mine yours ours theirs myself yourself himself herself itself
ourselves themselves one ones another others
time times today tomorrow yesterday day days week weeks month months year years hour hours minute
minutes second seconds moment moments morning afternoon evening night soon earlier currently
recently previously already always sometimes often usually
much many little less least enough several couple bit
let lets letting allow allowed enable enabled start started starting begin began begun beginning
end ended ending finish finished finishing complete completed continue continued continuing keep
kept keeping
thing things stuff something anything everything nothing someone anyone everyone nobody somebody
anybody everybody somewhere anywhere everywhere nowhere
um uh hmm ah oh mean essentially generally specifically particularly
""".split())

PROFESSIONAL_PHRASES = ('please', 'thank', 'help', 'assist', 'understand', 'apologize', 'certainly')
SATISFIED_PHRASES = ('thanks', 'thank you', 'great', 'perfect', 'excellent', 'appreciate', 'helpful')
DISSATISFIED_PHRASES = ('frustrated', 'angry', 'disappointed', 'terrible', 'awful', 'useless', 'waste')

MAX_KEYWORDS = 15
MAX_SATISFACTION_INDICATORS = 5


@dataclass
class TranscriptMessage:
    """A single utterance in a transcript"""
    speaker: str
    text: str
    timestamp: Optional[str] = None


@dataclass
class LexicalAnalysis:
    """Lexical analysis of one transcript"""
    raw_score: float
    overall_sentiment: float  # 0.0-1.0
    sentiment_category: SentimentCategory
    positive_messages: int
    negative_messages: int
    neutral_messages: int
    keywords: List[Dict[str, Any]]
    avg_message_length: float
    avg_response_time: float
    agent_performance_score: int
    customer_satisfaction_score: int
    message_count: int
    satisfaction_indicators: List[str] = field(default_factory=list)

    @property
    def sentiment_label(self) -> str:
        return self.sentiment_category.label

    @property
    def normalized_score(self) -> float:
        """Overall sentiment on the 0-100 scale"""
        return self.overall_sentiment * 100

    def to_fields(self) -> Dict[str, Any]:
        """Columns for AnalysisRepository.upsert_lexical_analysis"""
        data = asdict(self)
        data.pop('raw_score')
        data.pop('satisfaction_indicators')
        data['sentiment_category'] = self.sentiment_category.value
        data['sentiment_label'] = self.sentiment_label
        return data


def parse_time(value: Optional[str]) -> Optional[float]:
    """Parse an H:MM[:SS] timestamp into minutes, or None if unparseable"""
    if not value:
        return None
    match = TIMESTAMP.search(str(value))
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 60 + int(minutes) + (int(seconds) if seconds else 0) / 60


class TranscriptAnalyzerService:
    """Lexicon-based transcript scoring"""

    def __init__(self, lexicon: Optional[Afinn] = None):
        """
        Args:
            lexicon: AFINN scorer; a default English lexicon is loaded if omitted
        """
        self.lexicon = lexicon or Afinn()

    def analyze(self, transcript: Optional[str]) -> LexicalAnalysis:
        """
        Analyze a transcript.

        Never raises for odd input: an empty transcript yields zero messages
        and midpoint scores.

        Args:
            transcript: JSON array of {speaker, text, timestamp} or free text

        Returns:
            LexicalAnalysis
        """
        transcript = transcript or ''
        messages = self.parse_transcript(transcript)

        raw_score = self.lexicon.score(transcript)
        normalized = max(0.0, min(100.0, 50 + raw_score * 5))

        positive = negative = neutral = 0
        for message in messages:
            message_score = self.lexicon.score(message.text)
            if message_score > 0:
                positive += 1
            elif message_score < 0:
                negative += 1
            else:
                neutral += 1

        satisfaction, indicators = self.estimate_customer_satisfaction(messages)

        return LexicalAnalysis(
            raw_score=raw_score,
            overall_sentiment=normalized / 100,
            sentiment_category=SentimentCategory.from_raw_score(raw_score),
            positive_messages=positive,
            negative_messages=negative,
            neutral_messages=neutral,
            keywords=self.extract_keywords(transcript),
            avg_message_length=self.average_message_length(messages),
            avg_response_time=self.average_response_time(messages),
            agent_performance_score=self.score_agent_performance(messages),
            customer_satisfaction_score=satisfaction,
            message_count=len(messages),
            satisfaction_indicators=indicators,
        )

    def parse_transcript(self, transcript: str) -> List[TranscriptMessage]:
        """
        Split a transcript into messages.

        A JSON array is used as-is when every entry is an object with a text
        field; anything else is parsed line by line as free text.
        """
        messages = self._parse_json_messages(transcript)
        if messages is not None:
            return messages

        messages = []
        for line in transcript.splitlines():
            line = line.strip()
            if not line:
                continue
            match = SPEAKER_LINE.match(line)
            if match:
                timestamp, speaker, text = match.groups()
                messages.append(TranscriptMessage(speaker=speaker.lower(), text=text.strip(), timestamp=timestamp))
            else:
                messages.append(TranscriptMessage(speaker='unknown', text=line))
        return messages

    def _parse_json_messages(self, transcript: str) -> Optional[List[TranscriptMessage]]:
        try:
            parsed = json.loads(transcript)
        except (ValueError, RecursionError):
            # Deeply nested brackets exhaust the decoder; read as free text
            return None

        if not isinstance(parsed, list):
            return None

        messages = []
        for entry in parsed:
            if not isinstance(entry, dict) or not isinstance(entry.get('text'), str):
                logger.debug("Transcript JSON entry without text, parsing as free text")
                return None
            timestamp = entry.get('timestamp')
            messages.append(TranscriptMessage(
                speaker=str(entry.get('speaker') or 'unknown').lower(),
                text=entry['text'],
                timestamp=str(timestamp) if timestamp is not None else None
            ))
        return messages

    def extract_keywords(self, transcript: str) -> List[Dict[str, Any]]:
        """Most frequent non-stop-words longer than three characters"""
        counts = Counter(
            token for token in WORD.findall(transcript.lower())
            if len(token) > 3 and token not in STOP_WORDS
        )
        return [{'word': word, 'count': count} for word, count in counts.most_common(MAX_KEYWORDS)]

    @staticmethod
    def average_message_length(messages: List[TranscriptMessage]) -> float:
        if not messages:
            return 0.0
        return round(sum(len(message.text) for message in messages) / len(messages), 2)

    @staticmethod
    def average_response_time(messages: List[TranscriptMessage]) -> float:
        """Mean minutes between consecutive messages that both carry a timestamp"""
        gaps = []
        for previous, current in zip(messages, messages[1:]):
            start = parse_time(previous.timestamp)
            end = parse_time(current.timestamp)
            if start is not None and end is not None:
                gaps.append(end - start)
        if not gaps:
            return 0.0
        return round(sum(gaps) / len(gaps), 2)

    @staticmethod
    def score_agent_performance(messages: List[TranscriptMessage]) -> int:
        agent_messages = [m for m in messages if 'agent' in m.speaker or 'support' in m.speaker]
        if not agent_messages:
            return 50

        professional = sum(
            1
            for message in agent_messages
            for phrase in PROFESSIONAL_PHRASES
            if phrase in message.text.lower()
        )
        score = 50 + min(20, professional * 2)

        avg_length = sum(len(m.text) for m in agent_messages) / len(agent_messages)
        if avg_length > 100:
            score += 10
        if avg_length > 200:
            score += 10

        return min(100, score)

    @staticmethod
    def estimate_customer_satisfaction(messages: List[TranscriptMessage]):
        """
        Phrase-based satisfaction estimate from customer messages.

        Returns:
            Tuple of (score 0-100, up to five matched indicators)
        """
        customer_messages = [m for m in messages if 'customer' in m.speaker or 'user' in m.speaker]
        if not customer_messages:
            return 50, []

        score = 50
        indicators = []
        for message in customer_messages:
            text = message.text.lower()
            for phrase in SATISFIED_PHRASES:
                if phrase in text:
                    score += 5
                    indicators.append(f"positive: {phrase}")
            for phrase in DISSATISFIED_PHRASES:
                if phrase in text:
                    score -= 5
                    indicators.append(f"negative: {phrase}")

        return max(0, min(100, score)), indicators[:MAX_SATISFACTION_INDICATORS]
