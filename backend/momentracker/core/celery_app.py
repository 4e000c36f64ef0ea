from __future__ import annotations

from celery import Celery
from celery.signals import setup_logging

from momentracker.core.config import settings
from momentracker.core.logging import configure_logging

celery_app = Celery(
    "momentracker",
    broker=settings.redis_url,
    include=["momentracker.tasks.trending", "momentracker.tasks.quotes"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "collect-trending-snapshots": {
            "task": "momentracker.tasks.trending.collect_trending_snapshots",
            "schedule": settings.trending_poll_interval_seconds,
        },
        "prune-trending-snapshots-hourly": {
            "task": "momentracker.tasks.trending.prune_trending_snapshots",
            "schedule": 60 * 60,
        },
        "prune-daily-quotes-daily": {
            "task": "momentracker.tasks.quotes.prune_daily_quotes",
            "schedule": 24 * 60 * 60,
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**_: object) -> None:
    configure_logging(settings.log_level)
