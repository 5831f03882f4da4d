from celery import Celery
from arcpp.core.config import settings

celery_app = Celery(
    "arcpp",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "arcpp.tasks.tasks_cache"
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # redeliver tasks of a lost worker
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,
    task_routes={
        "arcpp.tasks.tasks_cache.*": {"queue": "cache"}
    }
)
