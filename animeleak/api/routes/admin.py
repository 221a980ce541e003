"""
Admin API: gallery moderation and billing settings. Every route requires an admin identity.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from animeleak.api.deps import get_visibility_service
from animeleak.db.session import get_db
from animeleak.schemas.admin import (
    AdminFeaturedPageOut,
    BillingSettingsOut,
    BillingSettingsUpdate,
    DisableImageIn,
)
from animeleak.services.auth.jwt import require_admin
from animeleak.services.billing.settings_service import BillingSettingsService
from animeleak.visibility.service import VisibilityService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/featured", response_model=AdminFeaturedPageOut)
def featured_images(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    visibility: VisibilityService = Depends(get_visibility_service),
):
    return visibility.get_admin_featured_images(cursor, limit)


@router.post("/images/{image_id}/disable")
def disable_image(
    image_id: str,
    payload: DisableImageIn,
    admin: dict = Depends(require_admin),
    visibility: VisibilityService = Depends(get_visibility_service),
):
    image = visibility.disable_featured_image(admin["user_id"], image_id, payload.reason)
    return {"id": image.id, "is_disabled_by_admin": True}


@router.post("/images/{image_id}/enable")
def enable_image(
    image_id: str,
    admin: dict = Depends(require_admin),
    visibility: VisibilityService = Depends(get_visibility_service),
):
    image = visibility.enable_featured_image(admin["user_id"], image_id)
    return {"id": image.id, "is_disabled_by_admin": False}


@router.get("/billing-settings", response_model=BillingSettingsOut)
def billing_settings_get(db: Session = Depends(get_db)):
    return BillingSettingsService(db).as_dict()


@router.put("/billing-settings", response_model=BillingSettingsOut)
def billing_settings_put(
    payload: BillingSettingsUpdate,
    admin: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return BillingSettingsService(db).update(payload.model_dump(exclude_none=True), updated_by=admin["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
