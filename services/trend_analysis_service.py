"""
TrendAnalysisService - Daily sentiment trends, forecasting and anomaly detection

The forecast is a heuristic: a 7-day moving average extended along the least
squares slope of the last two weeks. It is not a validated statistical model
and carries no accuracy guarantee.
"""

import logging
import statistics
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Dict, Any, Optional

from scipy import stats

from repositories.sentiment_trend_repository import SentimentTrendRepository, DailyTrendPoint
from services.enums import TrendDirection, AnomalyType
from utils.datetime_utils import utc_today

logger = logging.getLogger(__name__)

WINDOW_SIZE = 7
TREND_WINDOW = 14
ANOMALY_Z_THRESHOLD = 2.0
TREND_CHANGE_THRESHOLD = 5.0
MIN_CONFIDENCE = 0.5
CONFIDENCE_DECAY = 0.05


@dataclass
class ForecastPoint:
    """Predicted sentiment for a future day"""
    date: date
    predicted_sentiment: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'predicted_sentiment': self.predicted_sentiment,
            'confidence': self.confidence,
        }


@dataclass
class Anomaly:
    """A day that deviates more than two standard deviations from its trailing week"""
    date: date
    value: float
    expected: float
    deviation: float
    type: AnomalyType

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'value': self.value,
            'expected': self.expected,
            'deviation': self.deviation,
            'type': self.type.value,
        }


@dataclass
class TrendInsight:
    """Recent versus previous week summary"""
    trend: TrendDirection
    change_percent: float
    message: str
    forecast_trend: Optional[TrendDirection] = None
    forecast_change_percent: Optional[float] = None
    current_avg: Optional[float] = None
    previous_avg: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'trend': self.trend.value,
            'change_percent': self.change_percent,
            'message': self.message,
        }
        if self.trend != TrendDirection.INSUFFICIENT_DATA:
            data.update({
                'forecast_trend': self.forecast_trend.value if self.forecast_trend else None,
                'forecast_change_percent': self.forecast_change_percent,
                'current_avg': self.current_avg,
                'previous_avg': self.previous_avg,
            })
        return data


INSUFFICIENT_DATA_INSIGHT = TrendInsight(
    trend=TrendDirection.INSUFFICIENT_DATA,
    change_percent=0,
    message='Not enough data to generate insights'
)


def _sentiments(series: List[DailyTrendPoint]) -> List[float]:
    return [point.avg_sentiment for point in series]


def percent_change(current: float, baseline: float) -> float:
    """Percentage change from baseline; a zero baseline counts as no change"""
    if baseline == 0:
        return 0.0
    return (current - baseline) / baseline * 100


def classify_change(change_percent: float) -> TrendDirection:
    if change_percent > TREND_CHANGE_THRESHOLD:
        return TrendDirection.IMPROVING
    if change_percent < -TREND_CHANGE_THRESHOLD:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def forecast_sentiment(series: List[DailyTrendPoint], days: int = 7) -> List[ForecastPoint]:
    """
    Project sentiment ``days`` ahead of the last point in ``series``.

    Fewer than seven points yields an empty forecast.
    """
    if len(series) < WINDOW_SIZE:
        return []

    values = _sentiments(series)
    moving_avg = statistics.fmean(values[-WINDOW_SIZE:])

    trend_values = values[-TREND_WINDOW:]
    slope = stats.linregress(list(range(len(trend_values))), trend_values).slope

    last_date = series[-1].date
    forecast = []
    for i in range(1, days + 1):
        predicted = max(0.0, min(1.0, moving_avg + slope * i))
        forecast.append(ForecastPoint(
            date=last_date + timedelta(days=i),
            predicted_sentiment=round(predicted, 2),
            confidence=round(max(MIN_CONFIDENCE, 1 - CONFIDENCE_DECAY * i), 2)
        ))
    return forecast


def detect_anomalies(series: List[DailyTrendPoint]) -> List[Anomaly]:
    """
    Flag points whose z-score against the preceding seven points exceeds 2.

    A window with zero variance cannot be scored and never flags its point.
    """
    if len(series) < WINDOW_SIZE:
        return []

    values = _sentiments(series)
    anomalies = []
    for i in range(WINDOW_SIZE, len(values)):
        window = values[i - WINDOW_SIZE:i]
        mean = statistics.fmean(window)
        std_dev = statistics.pstdev(window)
        if std_dev == 0:
            continue

        current = values[i]
        z_score = abs(current - mean) / std_dev
        if z_score > ANOMALY_Z_THRESHOLD:
            anomalies.append(Anomaly(
                date=series[i].date,
                value=current,
                expected=mean,
                deviation=z_score,
                type=AnomalyType.SPIKE if current > mean else AnomalyType.DROP
            ))
    return anomalies


def get_trend_insights(series: List[DailyTrendPoint],
                       forecast: List[ForecastPoint]) -> TrendInsight:
    """
    Compare the last seven points with the seven before them.

    With fewer than fourteen points the previous week is taken to equal the
    recent one, so the change is 0%.
    """
    if len(series) < WINDOW_SIZE:
        return INSUFFICIENT_DATA_INSIGHT

    values = _sentiments(series)
    recent_avg = statistics.fmean(values[-WINDOW_SIZE:])
    previous = values[-2 * WINDOW_SIZE:-WINDOW_SIZE]
    previous_avg = statistics.fmean(previous) if len(previous) == WINDOW_SIZE else recent_avg

    change = percent_change(recent_avg, previous_avg)
    trend = classify_change(change)
    if trend == TrendDirection.IMPROVING:
        message = f"Sentiment improving by {change:.1f}%"
    elif trend == TrendDirection.DECLINING:
        message = f"Sentiment declining by {abs(change):.1f}%"
    else:
        message = 'Sentiment is stable'

    if forecast:
        forecast_avg = statistics.fmean(point.predicted_sentiment for point in forecast)
        forecast_change = percent_change(forecast_avg, recent_avg)
    else:
        forecast_change = 0.0

    return TrendInsight(
        trend=trend,
        change_percent=round(change, 1),
        message=message,
        forecast_trend=classify_change(forecast_change),
        forecast_change_percent=round(forecast_change, 1),
        current_avg=round(recent_avg, 2),
        previous_avg=round(previous_avg, 2)
    )


class TrendAnalysisService:
    """Service for sentiment trend aggregation and reporting"""

    def __init__(self, trend_repository: SentimentTrendRepository,
                 recompute_days: int = 30, forecast_days: int = 7):
        """
        Args:
            trend_repository: Repository for daily sentiment trends
            recompute_days: Default window for update_sentiment_trends
            forecast_days: Default forecast horizon for reports
        """
        self.trend_repository = trend_repository
        self.recompute_days = recompute_days
        self.forecast_days = forecast_days

    def calculate_daily_trends(self,
                               account_id: Optional[int] = None,
                               start_date: Optional[date] = None,
                               end_date: Optional[date] = None) -> List[DailyTrendPoint]:
        """Aggregate analysed conversations per calendar day (sparse)"""
        return self.trend_repository.aggregate_daily_sentiment(account_id, start_date, end_date)

    def update_sentiment_trends(self, account_id: Optional[int] = None,
                                days: Optional[int] = None) -> int:
        """
        Recompute and upsert the trend rows for the window ending today.

        Safe to repeat: each (date, account) row is replaced, never duplicated.

        Returns:
            Number of day rows written
        """
        days = self.recompute_days if days is None else days
        end_date = utc_today()
        start_date = end_date - timedelta(days=days)

        trends = self.calculate_daily_trends(account_id, start_date, end_date)
        for point in trends:
            self.trend_repository.upsert_daily_trend(point.date, account_id, point)
        self.trend_repository.commit()

        logger.info(f"Updated {len(trends)} sentiment trend rows for account {account_id}")
        return len(trends)

    def forecast_sentiment(self, series: List[DailyTrendPoint], days: int = 7) -> List[ForecastPoint]:
        return forecast_sentiment(series, days)

    def detect_anomalies(self, series: List[DailyTrendPoint]) -> List[Anomaly]:
        return detect_anomalies(series)

    def get_trend_insights(self, series: List[DailyTrendPoint],
                           forecast: List[ForecastPoint]) -> TrendInsight:
        return get_trend_insights(series, forecast)

    def get_trend_report(self, days: int = 30, account_id: Optional[int] = None,
                         forecast_days: Optional[int] = None) -> Dict[str, Any]:
        """
        Stored trend series for the window plus forecast, anomalies and insights.

        Returns:
            Dictionary with historical, forecast, anomalies and insights
        """
        forecast_days = self.forecast_days if forecast_days is None else forecast_days
        end_date = utc_today()
        start_date = end_date - timedelta(days=days)

        series = self.trend_repository.query_daily_trends(account_id, start_date, end_date)
        forecast = forecast_sentiment(series, forecast_days)

        return {
            'historical': [point.to_dict() for point in series],
            'forecast': [point.to_dict() for point in forecast],
            'anomalies': [anomaly.to_dict() for anomaly in detect_anomalies(series)],
            'insights': get_trend_insights(series, forecast).to_dict(),
        }
