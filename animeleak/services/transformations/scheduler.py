"""
Hands a background generation step to the worker pool.

The unit of work is just the original's id; the step re-reads everything it
needs from the database, so a duplicate or late delivery is harmless (the
processing claim is a conditional UPDATE).
"""
import logging
from abc import ABC, abstractmethod

from animeleak.services.idempotency import IdempotencyStore

logger = logging.getLogger(__name__)

GENERATE_IMAGE_TASK = "animeleak.workers.tasks.generate_image.generate_image"


def queued_lease_key(image_id: str) -> str:
    return f"generation_queued:{image_id}"


class GenerationScheduler(ABC):
    @abstractmethod
    def enqueue(self, image_id: str) -> bool:
        """Schedule one step for image_id. False if one is already queued."""


class CeleryGenerationScheduler(GenerationScheduler):
    def __init__(self, leases: IdempotencyStore | None = None) -> None:
        self._leases = leases

    @property
    def leases(self) -> IdempotencyStore:
        if self._leases is None:
            self._leases = IdempotencyStore()
        return self._leases

    def enqueue(self, image_id: str) -> bool:
        from animeleak.core.celery_app import celery_app

        if not self.leases.check_and_set(queued_lease_key(image_id)):
            logger.info("generation_already_queued", extra={"image_id": image_id})
            return False
        try:
            celery_app.send_task(GENERATE_IMAGE_TASK, args=[image_id])
        except Exception:
            self.leases.release(queued_lease_key(image_id))
            raise
        logger.info("generation_enqueued", extra={"image_id": image_id})
        return True

    def release(self, image_id: str) -> None:
        self.leases.release(queued_lease_key(image_id))
