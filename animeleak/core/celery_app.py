"""
Celery application: broker and result backend from settings.
Tasks: image generation (one per original) and checkout session creation.
"""
from celery import Celery
from celery.signals import setup_logging

from animeleak.core.config import settings
from animeleak.core.logging import configure_logging

celery_app = Celery(
    "animeleak",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "animeleak.workers.tasks.generate_image",
        "animeleak.workers.tasks.process_checkout",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
)

celery_app.conf.task_routes = {
    "animeleak.workers.tasks.generate_image.generate_image": {"queue": "generation"},
}


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging()
