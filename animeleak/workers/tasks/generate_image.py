"""
Celery task: one background generation step for an original.
Enqueued by CeleryGenerationScheduler: send_task("animeleak.workers.tasks.generate_image.generate_image", args=[image_id]).

Retry policy belongs to TransformationService (one auto-retry), so the task
never raises and Celery never retries it.
"""
import logging

from sqlalchemy.orm import Session

from animeleak.core.celery_app import celery_app
from animeleak.db.session import SessionLocal
from animeleak.services.transformations.scheduler import CeleryGenerationScheduler
from animeleak.services.transformations.service import TransformationService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="animeleak.workers.tasks.generate_image.generate_image", max_retries=0)
def generate_image(self, image_id: str) -> dict:
    scheduler = CeleryGenerationScheduler()
    try:
        # Free the queued lease first so this step's own auto-retry can enqueue.
        scheduler.release(image_id)
    except Exception:
        logger.warning("generation_lease_release_failed", extra={"image_id": image_id}, exc_info=True)

    db: Session = SessionLocal()
    try:
        service = TransformationService(db, scheduler=scheduler)
        return service.run_generation(image_id)
    except Exception as e:
        logger.exception("generation_task_crashed", extra={"image_id": image_id})
        return {"ok": False, "error": str(e)}
    finally:
        db.close()
