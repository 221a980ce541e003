"""Celery task wrappers and the Redis-leased scheduler, with the seams mocked."""
from unittest.mock import MagicMock, patch

import pytest

from animeleak.core.celery_app import celery_app
from animeleak.services.idempotency import IdempotencyStore
from animeleak.services.transformations.scheduler import (
    GENERATE_IMAGE_TASK,
    CeleryGenerationScheduler,
    queued_lease_key,
)
from animeleak.workers.tasks.generate_image import generate_image
from animeleak.workers.tasks.process_checkout import process_checkout

TASK_MODULE = "animeleak.workers.tasks.generate_image"


class TestIdempotencyStore:
    def test_first_set_wins(self):
        client = MagicMock()
        client.set.side_effect = [True, None]
        leases = IdempotencyStore(client=client)

        assert leases.check_and_set("k", ttl_seconds=30) is True
        assert leases.check_and_set("k", ttl_seconds=30) is False
        client.set.assert_called_with("idempotency:k", "1", nx=True, ex=30)

    def test_release_deletes_key(self):
        client = MagicMock()
        IdempotencyStore(client=client).release("k")
        client.delete.assert_called_once_with("idempotency:k")


class TestCeleryGenerationScheduler:
    def test_enqueue_takes_lease_then_sends(self):
        leases = MagicMock()
        leases.check_and_set.return_value = True
        with patch.object(celery_app, "send_task") as send_task:
            assert CeleryGenerationScheduler(leases=leases).enqueue("img-1") is True
        leases.check_and_set.assert_called_once_with(queued_lease_key("img-1"))
        send_task.assert_called_once_with(GENERATE_IMAGE_TASK, args=["img-1"])

    def test_second_enqueue_is_dropped(self):
        leases = MagicMock()
        leases.check_and_set.return_value = False
        with patch.object(celery_app, "send_task") as send_task:
            assert CeleryGenerationScheduler(leases=leases).enqueue("img-1") is False
        send_task.assert_not_called()

    def test_broker_failure_releases_lease(self):
        leases = MagicMock()
        leases.check_and_set.return_value = True
        with patch.object(celery_app, "send_task", side_effect=ConnectionError("broker down")):
            with pytest.raises(ConnectionError):
                CeleryGenerationScheduler(leases=leases).enqueue("img-1")
        leases.release.assert_called_once_with(queued_lease_key("img-1"))


class TestGenerateImageTask:
    def test_releases_lease_and_runs_step(self):
        with patch(f"{TASK_MODULE}.CeleryGenerationScheduler") as scheduler_cls, \
                patch(f"{TASK_MODULE}.SessionLocal") as session_local, \
                patch(f"{TASK_MODULE}.TransformationService") as service_cls:
            service_cls.return_value.run_generation.return_value = {"ok": True, "generated_id": "g1"}

            result = generate_image.run("img-1")

        assert result == {"ok": True, "generated_id": "g1"}
        scheduler_cls.return_value.release.assert_called_once_with("img-1")
        service_cls.assert_called_once_with(session_local.return_value, scheduler=scheduler_cls.return_value)
        session_local.return_value.close.assert_called_once()

    def test_never_raises(self):
        with patch(f"{TASK_MODULE}.CeleryGenerationScheduler") as scheduler_cls, \
                patch(f"{TASK_MODULE}.SessionLocal") as session_local, \
                patch(f"{TASK_MODULE}.TransformationService") as service_cls:
            scheduler_cls.return_value.release.side_effect = ConnectionError("redis down")
            service_cls.return_value.run_generation.side_effect = RuntimeError("db gone")

            result = generate_image.run("img-1")

        assert result == {"ok": False, "error": "db gone"}
        session_local.return_value.close.assert_called_once()

    def test_task_is_not_retried_by_celery(self):
        assert generate_image.max_retries == 0
        assert generate_image.name == GENERATE_IMAGE_TASK


def test_process_checkout_task_reports_status():
    module = "animeleak.workers.tasks.process_checkout"
    with patch(f"{module}.SessionLocal") as session_local, patch(f"{module}.CheckoutService") as service_cls:
        service_cls.return_value.process_checkout.return_value = "completed"

        result = process_checkout.run("cs-1", success_url="https://app.test/done")

    assert result == {"ok": True, "status": "completed"}
    service_cls.return_value.process_checkout.assert_called_once_with(
        "cs-1",
        success_url="https://app.test/done",
        embed_origin=None,
        customer_email=None,
        customer_name=None,
    )
    session_local.return_value.close.assert_called_once()
