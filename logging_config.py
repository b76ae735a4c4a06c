# logging_config.py

import logging
import structlog
import sys
from typing import Any, Dict, Optional
from flask import has_request_context, request, g


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add Flask request context to log entries"""
    if has_request_context():
        event_dict["request_id"] = getattr(g, 'request_id', None)
        event_dict["remote_addr"] = request.remote_addr
        event_dict["method"] = request.method
        event_dict["path"] = request.path
    return event_dict


def setup_logging(app_name: str = "conversation-analytics", log_level: str = "INFO") -> None:
    """
    Configure structured logging

    Args:
        app_name: Application name for log identification
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_request_context,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Services and repositories log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    logging.getLogger(app_name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name or __name__)


class AnalysisLogger:
    """Batch job and trend recomputation logger"""

    def __init__(self):
        self.logger = get_logger("analysis")

    def log_batch_completed(self, job: str, processed: int, failed: int, duration_ms: float):
        """Log the outcome of an analysis or churn scoring batch"""
        self.logger.info(
            "Batch completed",
            job=job,
            processed=processed,
            failed=failed,
            duration_ms=duration_ms,
            event_type="batch_completed"
        )

    def log_trends_recomputed(self, account_id: Optional[int], days: int, rows: int, duration_ms: float):
        self.logger.info(
            "Sentiment trends recomputed",
            account_id=account_id,
            days=days,
            rows=rows,
            duration_ms=duration_ms,
            event_type="trends_recomputed"
        )


# Global logger instance
analysis_logger = AnalysisLogger()
