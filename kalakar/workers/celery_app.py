"""Celery application running the periodic conversation sweeps."""

from celery import Celery

from kalakar.core.config import settings

celery_app = Celery(
    "kalakar",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "kalakar.workers.tasks.maintenance",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # A sweep is one SELECT and one bulk UPDATE; anything slower is stuck
    task_time_limit=300,
    task_soft_time_limit=240,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Sweep counts are also logged, so results need not live long
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    task_default_queue="default",
    beat_schedule={
        "mark-abandoned-conversations": {
            "task": "tasks.maintenance.mark_abandoned_conversations",
            "schedule": 3600.0,
        },
    },
)


class BaseTask(celery_app.Task):  # type: ignore[misc, name-defined]
    """Retries failed sweeps with jittered backoff; the sweeps are idempotent."""

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    max_retries = 3
