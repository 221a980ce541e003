"""
TransformationService: credit-gated submit, the background generation step,
its failure/refund/retry path, and the owner-side queries over images.

Status changes are conditional UPDATEs (WHERE generation_status IN <allowed
sources>), so a late or duplicate signal finds nothing to move and is skipped.
Each distinct failure (a row that actually moved to failed) refunds one credit
in the same commit, when refunds are enabled; retries take no credit.
"""
import logging
import time
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from animeleak.core.config import settings
from animeleak.models.image import GenerationStatus, Image, sources_for
from animeleak.services.billing.settings_service import BillingSettingsService, BillingSnapshot
from animeleak.services.errors import (
    ConfigurationError,
    InsufficientCredits,
    NotAuthorized,
    NotFound,
    TransientGenerationError,
    ValidationError,
)
from animeleak.services.image_generation import (
    FailureType,
    ImageGenerationError,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageProviderFactory,
    classify_failure,
    is_retry_allowed,
)
from animeleak.services.ledger.service import CreditLedger
from animeleak.services.pagination import fetch_page
from animeleak.services.transformations.scheduler import CeleryGenerationScheduler, GenerationScheduler
from animeleak.storage.base import AssetStore
from animeleak.storage.local import get_asset_store
from animeleak.utils.metrics import generation_duration_seconds, metrics

logger = logging.getLogger(__name__)

# One automatic re-attempt: the first failure moves attempts 0 -> 1 and reschedules,
# the second moves 1 -> 2 and leaves the original failed for a manual retry.
MAX_GENERATION_ATTEMPTS = 2
MISSING_ASSET_ERROR = "Original image no longer available"
MAX_ERROR_LENGTH = 2000
DEFAULT_INPUT_MIME = "image/jpeg"


def image_view(image: Image, url: str | None) -> dict:
    """Owner-facing fields of an image; url is resolved at read time, never stored."""
    return {
        "id": image.id,
        "url": url,
        "created_at": image.created_at,
        "is_generated": bool(image.is_generated),
        "original_id": image.original_id,
        "generation_status": image.generation_status,
        "generation_error": image.generation_error,
        "generation_attempts": image.generation_attempts or 0,
        "content_type": image.content_type,
        "width": image.width,
        "height": image.height,
        "sharing_enabled": image.sharing_enabled is not False,
        "share_expires_at": image.share_expires_at,
        "is_featured": bool(image.is_featured),
        "featured_at": image.featured_at,
        "is_disabled_by_admin": bool(image.is_disabled_by_admin),
    }


class TransformationService:
    def __init__(
        self,
        db: Session,
        store: AssetStore | None = None,
        scheduler: GenerationScheduler | None = None,
        provider: ImageGenerationProvider | None = None,
        billing: BillingSnapshot | None = None,
        instruction: str | None = None,
    ) -> None:
        self.db = db
        self.store = store or get_asset_store()
        self.scheduler = scheduler or CeleryGenerationScheduler()
        self._provider = provider
        self.billing = billing or BillingSettingsService(db).get_effective()
        self.ledger = CreditLedger(db, self.billing)
        self.instruction = instruction or settings.generation_instruction

    @property
    def provider(self) -> ImageGenerationProvider:
        if self._provider is None:
            try:
                self._provider = ImageProviderFactory.create_from_settings(settings)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        return self._provider

    # ------------------------------------------------------------------ submit

    def submit(self, user_id: str, handle: str) -> str:
        """
        Reserve one credit and create a pending original for an already stored asset.
        Returns the original's id; generation happens in the background.

        Raises InsufficientCredits (no write) or ValidationError (no credit touched).
        """
        self.ledger.get_or_create_account(user_id)
        balance = self.ledger.get_balance(user_id) or 0
        if balance < 1:
            metrics.inc_balance_rejected()
            raise InsufficientCredits(credits=balance)

        meta = self._validate_asset(handle)

        image = Image(
            body=handle,
            user_id=user_id,
            is_generated=False,
            generation_status=GenerationStatus.PENDING.value,
            generation_attempts=0,
            content_type=meta.content_type,
            width=meta.width,
            height=meta.height,
            size_bytes=meta.size,
        )
        try:
            self.ledger.reserve_credit(user_id)
            self.db.add(image)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(image)
        image_id = image.id

        metrics.inc_submitted()
        logger.info("generation_submitted", extra={"image_id": image_id, "user_id": user_id})
        self._schedule(image_id)
        return image_id

    def _validate_asset(self, handle: str):
        meta = self.store.get_metadata(handle)
        if meta is None:
            raise ValidationError("Missing storage metadata")
        if meta.content_type not in settings.allowed_content_types_set:
            raise ValidationError(f"Unsupported content type: {meta.content_type}")
        if meta.size > settings.max_upload_bytes:
            raise ValidationError(f"File too large (max {settings.max_upload_bytes} bytes)")
        return meta

    def _schedule(self, image_id: str) -> bool:
        try:
            return self.scheduler.enqueue(image_id)
        except Exception as exc:
            logger.exception("generation_enqueue_failed", extra={"image_id": image_id})
            self.record_failure(image_id, exc, allow_retry=False)
            return False

    # --------------------------------------------------------- state machine

    def _transition(self, image_id: str, target: GenerationStatus, **values) -> bool:
        result = self.db.execute(
            update(Image)
            .where(
                Image.id == image_id,
                Image.is_generated.is_(False),
                Image.generation_status.in_(sources_for(target)),
            )
            .values(generation_status=target.value, updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    # ------------------------------------------------------- background step

    def run_generation(self, image_id: str) -> dict:
        """
        One background step for an original. Never raises: every failure is
        written to the original and handed to the refund/retry path.
        """
        started = time.monotonic()
        if not self._transition(image_id, GenerationStatus.PROCESSING):
            self.db.rollback()
            logger.info("generation_claim_skipped", extra={"image_id": image_id})
            return {"ok": False, "skipped": True}
        self.db.commit()

        output_handle: str | None = None
        try:
            image = self.db.get(Image, image_id)
            input_bytes = self._load_original(image)
            response = self.provider.generate(
                ImageGenerationRequest(
                    instruction=self.instruction,
                    input_bytes=input_bytes,
                    input_mime_type=image.content_type or DEFAULT_INPUT_MIME,
                )
            )
            logger.debug(
                "generation_provider_response",
                extra={"image_id": image_id, "provider": response.provider, "response": response.raw_response_sanitized},
            )
            if not response.image_content:
                raise TransientGenerationError("Generative service returned no image data")
            output_handle = self.store.store(response.image_content, response.mime_type)
            generated_id = self._complete(image, output_handle, response.mime_type)
        except Exception as exc:
            self.db.rollback()
            if output_handle:
                self._discard_blob(output_handle)
            status_code = exc.http_status if isinstance(exc, ImageGenerationError) else None
            logger.warning(
                "generation_step_failed",
                extra={
                    "image_id": image_id,
                    "error": str(exc) or type(exc).__name__,
                    "status_code": status_code,
                },
            )
            failure_type = self.record_failure(image_id, exc)
            return {
                "ok": False,
                "error": str(exc) or type(exc).__name__,
                "failure_type": failure_type.value if failure_type else None,
            }
        finally:
            generation_duration_seconds.observe(time.monotonic() - started)

        metrics.inc_completed()
        logger.info("generation_completed", extra={"image_id": image_id, "user_id": image.user_id})
        return {"ok": True, "generated_id": generated_id}

    def _load_original(self, image: Image | None) -> bytes:
        if image is None or not image.body:
            raise NotFound(MISSING_ASSET_ERROR)
        if self.store.resolve_read_url(image.body) is None:
            raise NotFound(MISSING_ASSET_ERROR)
        content = self.store.read(image.body)
        if content is None:
            raise NotFound(MISSING_ASSET_ERROR)
        return content

    def _complete(self, image: Image, output_handle: str, mime_type: str) -> str:
        """Insert the generated record and mark the original completed in one commit."""
        existing = (
            self.db.query(Image)
            .filter(Image.original_id == image.id, Image.is_generated.is_(True))
            .first()
        )
        if existing is not None:
            raise RuntimeError(f"generated record already exists for {image.id}")
        meta = self.store.get_metadata(output_handle)
        generated = Image(
            body=output_handle,
            user_id=image.user_id,
            is_generated=True,
            original_id=image.id,
            content_type=mime_type,
            width=meta.width if meta else None,
            height=meta.height if meta else None,
            size_bytes=meta.size if meta else None,
        )
        self.db.add(generated)
        self.db.flush()
        if not self._transition(image.id, GenerationStatus.COMPLETED, generation_error=None):
            raise RuntimeError(f"original {image.id} left processing before completion")
        self.db.commit()
        return generated.id

    def _discard_blob(self, handle: str) -> None:
        try:
            self.store.delete(handle)
        except OSError:
            logger.warning("generation_output_cleanup_failed: %s", handle)

    def record_failure(self, image_id: str, exc: BaseException, allow_retry: bool = True) -> FailureType | None:
        """
        Failure path: mark failed, refund one credit in the same commit (if enabled), and for
        transient errors try the single auto-retry. Returns the classification,
        or None when the failure could not be recorded or was a duplicate.
        """
        error_text = (str(exc) or type(exc).__name__)[:MAX_ERROR_LENGTH]
        try:
            moved = self._transition(image_id, GenerationStatus.FAILED, generation_error=error_text)
            if moved:
                self._refund_failure(image_id, error_text)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.critical(
                "generation_failed_status_write_failed",
                extra={"image_id": image_id, "error": error_text},
                exc_info=True,
            )
            return None
        if not moved:
            logger.info("generation_failure_duplicate", extra={"image_id": image_id, "error": error_text})
            return None

        failure_type = classify_failure(exc)
        metrics.inc_failed("missing_asset" if isinstance(exc, NotFound) else failure_type.value)

        if not allow_retry:
            return failure_type
        if not is_retry_allowed(exc):
            logger.info(
                "generation_retry_skipped",
                extra={"image_id": image_id, "failure_type": failure_type.value, "error": error_text},
            )
            return failure_type
        try:
            self.maybe_retry_once(image_id)
        except Exception:
            self.db.rollback()
            logger.exception("generation_auto_retry_failed", extra={"image_id": image_id})
        return failure_type

    def _refund_failure(self, image_id: str, reason: str) -> bool:
        """Stage the refund for one recorded failure; committed with the failed status."""
        owner = self.db.execute(select(Image.user_id).where(Image.id == image_id)).scalar_one_or_none()
        if not owner:
            return False
        refunded, _ = self.ledger.refund(owner, 1, reason=reason, image_id=image_id)
        return refunded

    def maybe_retry_once(self, image_id: str) -> bool:
        """
        Automatic retry guard. Re-reads the attempt count and moves it forward with
        a conditional UPDATE, so a duplicate failure signal cannot count twice.
        Reschedules only while the new count is under MAX_GENERATION_ATTEMPTS.
        """
        row = self.db.execute(
            select(Image.generation_status, Image.generation_attempts).where(Image.id == image_id)
        ).one_or_none()
        if row is None or row.generation_status != GenerationStatus.FAILED.value:
            return False
        attempts = row.generation_attempts or 0
        new_attempts = attempts + 1
        will_retry = new_attempts < MAX_GENERATION_ATTEMPTS

        values = {"generation_attempts": new_attempts, "updated_at": datetime.now(timezone.utc)}
        if will_retry:
            values.update(generation_status=GenerationStatus.PENDING.value, generation_error=None)
        result = self.db.execute(
            update(Image)
            .where(
                Image.id == image_id,
                Image.generation_status == GenerationStatus.FAILED.value,
                Image.generation_attempts == attempts,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount == 0:
            logger.info("generation_retry_race_lost", extra={"image_id": image_id, "attempts": attempts})
            return False
        if not will_retry:
            logger.info("generation_retry_exhausted", extra={"image_id": image_id, "attempts": new_attempts})
            return False

        metrics.inc_retry("auto")
        logger.info("generation_auto_retry", extra={"image_id": image_id, "attempts": new_attempts})
        self._schedule(image_id)
        return True

    def retry_original(self, user_id: str, image_id: str) -> None:
        """
        Manual retry of a failed original by its owner. Not bounded by the
        auto-retry count and takes no credit.
        """
        image = self._get_owned(user_id, image_id)
        if image.is_generated:
            raise ValidationError("Only originals can be retried")
        if image.generation_status != GenerationStatus.FAILED.value:
            raise ValidationError("Only failed generations can be retried")
        if self.store.resolve_read_url(image.body) is None:
            raise NotFound(MISSING_ASSET_ERROR)

        try:
            if not self._transition(image_id, GenerationStatus.PENDING, generation_error=None):
                raise ValidationError("Only failed generations can be retried")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        metrics.inc_retry("manual")
        logger.info("generation_manual_retry", extra={"image_id": image_id, "user_id": user_id})
        self._schedule(image_id)

    # --------------------------------------------------------------- queries

    def _get_owned(self, user_id: str, image_id: str) -> Image:
        image = self.db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        if image.user_id != user_id:
            raise NotAuthorized("Not the owner of this image")
        return image

    def _owner_query(self, user_id: str):
        return self.db.query(Image).filter(Image.user_id == user_id).order_by(Image.created_at.desc(), Image.id)

    def get_images(self, user_id: str) -> list[dict]:
        """Owner's images newest first; images whose blob no longer resolves are dropped."""
        out = []
        for image in self._owner_query(user_id).all():
            url = self.store.resolve_read_url(image.body)
            if url is not None:
                out.append(image_view(image, url))
        return out

    def get_gallery_page(self, user_id: str, cursor: str | None = None, limit: int | None = None) -> dict:
        rows, is_done, continue_cursor = fetch_page(self._owner_query(user_id), cursor, limit)
        page = []
        for image in rows:
            url = self.store.resolve_read_url(image.body)
            if url is not None:
                page.append(image_view(image, url))
        return {"page": page, "is_done": is_done, "continue_cursor": continue_cursor}

    def get_gallery_count(self, user_id: str) -> int:
        return self.db.query(Image).filter(Image.user_id == user_id).count()

    def get_failed_images(self, user_id: str) -> list[dict]:
        rows = (
            self.db.query(Image)
            .filter(
                Image.user_id == user_id,
                Image.is_generated.is_(False),
                Image.generation_status == GenerationStatus.FAILED.value,
            )
            .order_by(Image.created_at.desc())
            .all()
        )
        return [image_view(image, self.store.resolve_read_url(image.body)) for image in rows]

    def has_active_generations(self, user_id: str) -> bool:
        active = (
            self.db.query(Image.id)
            .filter(
                Image.user_id == user_id,
                Image.is_generated.is_(False),
                Image.generation_status.in_(
                    [GenerationStatus.PENDING.value, GenerationStatus.PROCESSING.value]
                ),
            )
            .first()
        )
        return active is not None

    def delete_image(self, user_id: str, image_id: str, is_admin: bool = False) -> None:
        """
        Delete an original together with its generated record(s), or a generated
        record together with its original, so no completed original is left
        without its result. Owner or admin only.
        """
        image = self.db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        if not is_admin and image.user_id != user_id:
            raise NotAuthorized("Not the owner of this image")

        root = image
        if image.is_generated and image.original_id:
            root = self.db.get(Image, image.original_id) or image
        children = []
        if not root.is_generated:
            children = self.db.query(Image).filter(Image.original_id == root.id).all()

        handles = [c.body for c in children] + [root.body]
        for child in children:
            self.db.delete(child)
        self.db.flush()
        self.db.delete(root)
        self.db.commit()

        for handle in handles:
            self._discard_blob(handle)
        logger.info("image_deleted", extra={"image_id": root.id, "user_id": user_id})
