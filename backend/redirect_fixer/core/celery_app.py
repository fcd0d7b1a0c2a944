"""Celery application configuration."""

from celery import Celery
from redirect_fixer.core.config import settings

celery_app = Celery(
    "redirect_fixer_workers",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "redirect_fixer.workers.crawler_tasks",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.SF_CRAWL_TIMEOUT + 300,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Task routes
celery_app.conf.task_routes = {
    "run_seo_crawl": {"queue": "crawler"},
}
