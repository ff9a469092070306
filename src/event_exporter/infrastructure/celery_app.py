from celery import Celery
from event_exporter.config import get_settings

settings = get_settings()

celery_app = Celery(
    "event_exporter",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "event_exporter.tasks.upload",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # upload results are only ever logged
    task_ignore_result=True,
    task_acks_late=True,
)
