# commands.py

import random
from datetime import date, timedelta
from typing import List, Optional

import click
from flask import current_app
from flask.cli import with_appcontext
from extensions import db
from repositories.sentiment_trend_repository import DailyTrendPoint
from utils.datetime_utils import utc_today


def generate_synthetic_trends(end_date: date, rng: Optional[random.Random] = None) -> List[DailyTrendPoint]:
    """
    Demo series for the 31 days ending on ``end_date``.

    Sentiment sits around 0.65, dips to 0.55 between 10 and 19 days ago and
    recovers to 0.70 over the last 10 days, each day jittered by up to 0.1.
    """
    rng = rng or random.Random()
    points = []
    for days_ago in range(30, -1, -1):
        if days_ago < 10:
            base = 0.70
        elif days_ago < 20:
            base = 0.55
        else:
            base = 0.65

        sentiment = max(0.0, min(1.0, base + rng.uniform(-0.1, 0.1)))
        count = max(0, round(50 + rng.uniform(-15, 15)))
        positive = round(count * (sentiment + 0.1))
        negative = round(count * (0.3 - sentiment * 0.2))

        points.append(DailyTrendPoint(
            date=end_date - timedelta(days=days_ago),
            avg_sentiment=sentiment,
            conversation_count=count,
            positive_count=positive,
            negative_count=negative,
            neutral_count=max(0, count - positive - negative),
        ))
    return points


@click.command('init-db')
@with_appcontext
def init_db():
    """Create all database tables"""
    import analytics_database  # noqa: F401  registers the models
    db.create_all()
    click.echo('Database tables created.')


@click.command('analyze')
@click.option('--limit', type=int, default=None, help='Maximum conversations to analyze')
@click.argument('conversation_ids', nargs=-1)
@with_appcontext
def analyze(limit, conversation_ids):
    """Run lexical analysis on unanalysed (or the given) conversations"""
    analysis_service = current_app.services.get('analysis')
    summary = analysis_service.run_analysis(
        conversation_ids=list(conversation_ids) or None,
        limit=limit
    ).unwrap()

    click.echo(f"Analyzed {summary['analyzed']}/{summary['total']} conversations")
    for error in summary['errors']:
        click.echo(f"  {error['conversation_id']}: {error['error']}", err=True)


@click.command('score-churn')
@click.option('--limit', type=int, default=None, help='Maximum conversations to score')
@click.option('--account-id', type=int, default=None, help='Restrict to one account')
@click.argument('conversation_ids', nargs=-1)
@with_appcontext
def score_churn(limit, account_id, conversation_ids):
    """Score churn risk for analysed (or the given) conversations"""
    churn_service = current_app.services.get('churn_prediction')
    summary = churn_service.score_batch(
        conversation_ids=list(conversation_ids) or None,
        account_id=account_id,
        limit=limit or current_app.config['CHURN_BATCH_LIMIT']
    ).unwrap()

    click.echo(f"Scored {summary['scored']}/{summary['total']} conversations")
    for error in summary['errors']:
        click.echo(f"  {error['conversation_id']}: {error['error']}", err=True)


@click.command('recompute-trends')
@click.option('--account-id', type=int, default=None, help='Account scope (default: all accounts)')
@click.option('--days', type=int, default=None, help='Days to recompute, ending today')
@with_appcontext
def recompute_trends(account_id, days):
    """Re-aggregate the daily sentiment trend rows"""
    trend_service = current_app.services.get('trend_analysis')
    updated = trend_service.update_sentiment_trends(account_id=account_id, days=days)
    click.echo(f'Updated {updated} trend rows.')


@click.command('backfill-trends')
@click.option('--account-id', type=int, default=None, help='Account scope (default: all accounts)')
@click.option('--seed', type=int, default=None, help='Random seed for a reproducible series')
@with_appcontext
def backfill_trends(account_id, seed):
    """Fill the last 31 days with a synthetic demo trend series"""
    trend_repository = current_app.services.get('sentiment_trend_repository')
    points = generate_synthetic_trends(utc_today(), random.Random(seed))
    for point in points:
        trend_repository.upsert_daily_trend(point.date, account_id, point)
    trend_repository.commit()
    click.echo(f'Backfilled {len(points)} days of sentiment trends.')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(init_db)
    app.cli.add_command(analyze)
    app.cli.add_command(score_churn)
    app.cli.add_command(recompute_trends)
    app.cli.add_command(backfill_trends)
