# celery_worker.py
from celery.schedules import crontab
from app import create_app
from celery_config import create_celery_app

# Create Celery instance with shared configuration
celery = create_celery_app(__name__)

# Flask app providing context for tasks when they run
flask_app = create_app()


# Run every task inside the Flask app context
class ContextTask(celery.Task):
    def __call__(self, *args, **kwargs):
        with flask_app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask

# --- Celery Beat Schedule ---
celery.conf.beat_schedule = {
    'recompute-sentiment-trends': {
        'task': 'tasks.analysis_tasks.recompute_sentiment_trends',
        # Daily at 1 AM UTC, after the previous day's conversations are in
        'schedule': crontab(hour=1, minute=0),
    },
    'analyze-new-conversations': {
        'task': 'tasks.analysis_tasks.run_lexical_analysis',
        'schedule': 3600.0,  # 1 hour
    },
}
celery.conf.timezone = 'UTC'

# Import tasks so they register with this Celery instance
import tasks.analysis_tasks  # noqa: E402,F401
