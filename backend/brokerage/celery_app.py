from celery import Celery
from brokerage.core.config import settings

celery_app = Celery(
    "brokerage",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["brokerage.tasks.async_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)
