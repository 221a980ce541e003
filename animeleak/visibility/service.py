"""
VisibilityService: public gallery, direct share links, owner share/feature
settings and admin moderation.

Anything hidden by the gate comes back as None / absent, never as an error that
would tell a requester the record exists.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from animeleak.models.image import Image
from animeleak.services.audit.service import AuditService
from animeleak.services.errors import NotAuthorized, NotFound, ValidationError
from animeleak.services.pagination import fetch_page
from animeleak.storage.base import AssetStore
from animeleak.storage.local import get_asset_store
from animeleak.visibility.gate import is_publicly_listable, is_share_resolvable

logger = logging.getLogger(__name__)


def public_view(image: Image, url: str) -> dict:
    """Fields safe for unauthenticated readers (no owner identity)."""
    return {
        "id": image.id,
        "url": url,
        "created_at": image.created_at,
        "is_featured": bool(image.is_featured),
    }


class VisibilityService:
    def __init__(self, db: Session, store: AssetStore | None = None) -> None:
        self.db = db
        self.store = store or get_asset_store()

    # -------------------------------------------------------------- public

    def get_public_gallery(self, cursor: str | None = None, limit: int | None = None) -> dict:
        query = (
            self.db.query(Image)
            .filter(Image.is_featured.is_(True), Image.is_disabled_by_admin.is_(False))
            .order_by(Image.featured_at.desc(), Image.id)
        )
        rows, is_done, continue_cursor = fetch_page(query, cursor, limit)
        page = []
        for image in rows:
            if not is_publicly_listable(image):
                continue
            url = self.store.resolve_read_url(image.body)
            if url is not None:
                page.append(public_view(image, url))
        return {"page": page, "is_done": is_done, "continue_cursor": continue_cursor}

    def get_shared_image(self, image_id: str, now: datetime | None = None) -> dict | None:
        image = self.db.get(Image, image_id)
        if image is None or not is_share_resolvable(image, now):
            return None
        url = self.store.resolve_read_url(image.body)
        if url is None:
            return None
        return public_view(image, url)

    # --------------------------------------------------------------- owner

    def _get_owned(self, user_id: str, image_id: str) -> Image:
        image = self.db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        if image.user_id != user_id:
            raise NotAuthorized("Not the owner of this image")
        return image

    def update_share_settings(
        self,
        user_id: str,
        image_id: str,
        sharing_enabled: bool,
        expiration_hours: int | None = None,
    ) -> Image:
        """0 or None hours clears the expiry (share never expires)."""
        image = self._get_owned(user_id, image_id)
        if expiration_hours is not None and expiration_hours < 0:
            raise ValidationError("expiration_hours must be >= 0")
        image.sharing_enabled = bool(sharing_enabled)
        if expiration_hours:
            image.share_expires_at = datetime.now(timezone.utc) + timedelta(hours=expiration_hours)
        else:
            image.share_expires_at = None
        self.db.commit()
        self.db.refresh(image)
        logger.info(
            "share_settings_updated",
            extra={"image_id": image_id, "user_id": user_id, "status": "enabled" if sharing_enabled else "disabled"},
        )
        return image

    def update_featured_status(self, user_id: str, image_id: str, is_featured: bool) -> Image:
        image = self._get_owned(user_id, image_id)
        if is_featured:
            if not image.is_generated:
                raise ValidationError("Only generated images can be featured")
            if image.is_disabled_by_admin:
                raise NotAuthorized("Image has been disabled by moderation")
            image.is_featured = True
            image.featured_at = datetime.now(timezone.utc)
        else:
            image.is_featured = False
            image.featured_at = None
        self.db.commit()
        self.db.refresh(image)
        logger.info("featured_status_updated", extra={"image_id": image_id, "user_id": user_id})
        return image

    # --------------------------------------------------------------- admin

    def disable_featured_image(self, admin_id: str, image_id: str, reason: str) -> Image:
        image = self.db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        image.is_disabled_by_admin = True
        image.disabled_by_admin_at = datetime.now(timezone.utc)
        image.disabled_by_admin_reason = reason
        AuditService(self.db).log(
            actor_type="admin",
            actor_id=admin_id,
            action="image_disabled",
            entity_type="image",
            entity_id=image_id,
            payload={"reason": reason},
        )
        self.db.commit()
        self.db.refresh(image)
        logger.info("image_disabled_by_admin", extra={"image_id": image_id, "user_id": admin_id})
        return image

    def enable_featured_image(self, admin_id: str, image_id: str) -> Image:
        image = self.db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        image.is_disabled_by_admin = False
        image.disabled_by_admin_at = None
        image.disabled_by_admin_reason = None
        AuditService(self.db).log(
            actor_type="admin",
            actor_id=admin_id,
            action="image_enabled",
            entity_type="image",
            entity_id=image_id,
        )
        self.db.commit()
        self.db.refresh(image)
        logger.info("image_enabled_by_admin", extra={"image_id": image_id, "user_id": admin_id})
        return image

    def get_admin_featured_images(self, cursor: str | None = None, limit: int | None = None) -> dict:
        """Every featured image, moderated or not, with owner and moderation fields."""
        query = (
            self.db.query(Image)
            .filter(Image.is_featured.is_(True))
            .order_by(Image.featured_at.desc(), Image.id)
        )
        rows, is_done, continue_cursor = fetch_page(query, cursor, limit)
        page = []
        for image in rows:
            url = self.store.resolve_read_url(image.body)
            if url is None:
                continue
            page.append(
                {
                    **public_view(image, url),
                    "user_id": image.user_id,
                    "is_disabled_by_admin": bool(image.is_disabled_by_admin),
                    "disabled_by_admin_reason": image.disabled_by_admin_reason,
                }
            )
        return {"page": page, "is_done": is_done, "continue_cursor": continue_cursor}
