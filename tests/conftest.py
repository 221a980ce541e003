import base64
import os

# Settings has required fields; provide them before anything imports animeleak.
os.environ.setdefault("DATABASE_URL", "sqlite:///./animeleak-test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ADMIN_USER_IDS", "admin-1")
os.environ.setdefault(
    "POLAR_WEBHOOK_SECRET", "whsec_" + base64.b64encode(b"polar-test-webhook-secret").decode("ascii")
)

from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from animeleak.db.base import Base
from animeleak.models import account, audit_log, billing_settings, checkout_session, image, payment  # noqa: F401
from animeleak.services.billing.settings_service import BillingSnapshot
from animeleak.services.image_generation.base import (
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
)
from animeleak.services.transformations.scheduler import GenerationScheduler
from animeleak.services.transformations.service import TransformationService
from animeleak.storage.base import AssetMetadata, AssetStore


class FakeAssetStore(AssetStore):
    """In-memory blobs; metadata is whatever the test declares."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.meta: dict[str, AssetMetadata] = {}

    def store(self, content: bytes, content_type: str | None = None) -> str:
        handle = uuid4().hex
        self.blobs[handle] = content
        self.meta[handle] = AssetMetadata(content_type=content_type or "application/octet-stream", size=len(content))
        return handle

    def resolve_read_url(self, handle: str) -> str | None:
        if handle not in self.blobs:
            return None
        return f"http://testserver/files/{handle}"

    def get_metadata(self, handle: str) -> AssetMetadata | None:
        return self.meta.get(handle)

    def read(self, handle: str) -> bytes | None:
        return self.blobs.get(handle)

    def delete(self, handle: str) -> None:
        self.blobs.pop(handle, None)
        self.meta.pop(handle, None)

    def load_signed(self, token: str) -> str | None:
        return token if token in self.blobs else None


class InMemoryScheduler(GenerationScheduler):
    """At most one queued entry per image id, like the Redis lease."""

    def __init__(self) -> None:
        self.queue: list[str] = []
        self.enqueued: list[str] = []

    def enqueue(self, image_id: str) -> bool:
        self.enqueued.append(image_id)
        if image_id in self.queue:
            return False
        self.queue.append(image_id)
        return True

    def take(self) -> str | None:
        return self.queue.pop(0) if self.queue else None


class FakeProvider(ImageGenerationProvider):
    """Plays back a script: bytes -> success, exception -> raised."""

    def __init__(self, *outcomes, mime_type: str = "image/png") -> None:
        super().__init__({})
        self.outcomes = list(outcomes)
        self.mime_type = mime_type
        self.requests: list[ImageGenerationRequest] = []

    def is_available(self) -> bool:
        return True

    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else b"generated-bytes"
        if isinstance(outcome, BaseException):
            raise outcome
        return ImageGenerationResponse(
            image_content=outcome, mime_type=self.mime_type, model="test-model", provider="fake"
        )


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store():
    return FakeAssetStore()


@pytest.fixture
def scheduler():
    return InMemoryScheduler()


@pytest.fixture
def billing():
    return BillingSnapshot(free_trial_credits=1, credits_per_pack=10, refund_on_failure=True)


@pytest.fixture
def make_service(db, store, scheduler, billing):
    def _make(*outcomes, billing_snapshot: BillingSnapshot | None = None, provider=None):
        return TransformationService(
            db,
            store=store,
            scheduler=scheduler,
            provider=provider or FakeProvider(*outcomes),
            billing=billing_snapshot or billing,
            instruction="turn it anime",
        )

    return _make


@pytest.fixture
def jpeg_handle(store):
    """A 500 KB 'JPEG' already in the store."""
    return store.store(b"\xff\xd8\xff" + b"0" * (500 * 1024 - 3), "image/jpeg")


@pytest.fixture
def drain(scheduler):
    """Run queued background steps until the queue is empty."""

    def _drain(service: TransformationService, max_steps: int = 10) -> list[dict]:
        results = []
        for _ in range(max_steps):
            image_id = scheduler.take()
            if image_id is None:
                break
            results.append(service.run_generation(image_id))
        return results

    return _drain
