"""
Owner-facing image routes: upload (submit), listings, retry, share/feature settings, delete.
"""
import logging

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from animeleak.api.deps import get_store, get_transformation_service, get_visibility_service
from animeleak.core.config import settings
from animeleak.schemas.images import (
    ActiveOut,
    CountOut,
    FeaturedIn,
    ImageOut,
    ImagePageOut,
    ShareSettingsIn,
    UploadAccepted,
)
from animeleak.services.auth.jwt import get_current_user
from animeleak.services.errors import InsufficientCredits, ValidationError
from animeleak.services.transformations.service import TransformationService, image_view
from animeleak.storage.base import AssetStore
from animeleak.visibility.service import VisibilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=UploadAccepted)
async def upload_image(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    store: AssetStore = Depends(get_store),
    service: TransformationService = Depends(get_transformation_service),
):
    """Store the photo, then submit it. Generation continues in the background."""
    content = await file.read()
    if not content:
        raise ValidationError("Empty upload")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_bytes} bytes)")

    handle = store.store(content, file.content_type)
    try:
        image_id = service.submit(current_user["user_id"], handle)
    except (ValidationError, InsufficientCredits):
        store.delete(handle)
        raise
    return UploadAccepted(storage_id=handle, original_image_id=image_id)


@router.get("", response_model=list[ImageOut])
def list_images(
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    return service.get_images(current_user["user_id"])


@router.get("/page", response_model=ImagePageOut)
def gallery_page(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    return service.get_gallery_page(current_user["user_id"], cursor, limit)


@router.get("/count", response_model=CountOut)
def gallery_count(
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    return CountOut(count=service.get_gallery_count(current_user["user_id"]))


@router.get("/failed", response_model=list[ImageOut])
def failed_images(
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    return service.get_failed_images(current_user["user_id"])


@router.get("/active", response_model=ActiveOut)
def active_generations(
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    return ActiveOut(active=service.has_active_generations(current_user["user_id"]))


@router.post("/{image_id}/retry", status_code=status.HTTP_202_ACCEPTED)
def retry_image(
    image_id: str,
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    service.retry_original(current_user["user_id"], image_id)
    return {"id": image_id, "generation_status": "pending"}


@router.patch("/{image_id}/share", response_model=ImageOut)
def update_share(
    image_id: str,
    payload: ShareSettingsIn,
    current_user: dict = Depends(get_current_user),
    visibility: VisibilityService = Depends(get_visibility_service),
    store: AssetStore = Depends(get_store),
):
    image = visibility.update_share_settings(
        current_user["user_id"], image_id, payload.sharing_enabled, payload.expiration_hours
    )
    return image_view(image, store.resolve_read_url(image.body))


@router.patch("/{image_id}/featured", response_model=ImageOut)
def update_featured(
    image_id: str,
    payload: FeaturedIn,
    current_user: dict = Depends(get_current_user),
    visibility: VisibilityService = Depends(get_visibility_service),
    store: AssetStore = Depends(get_store),
):
    image = visibility.update_featured_status(current_user["user_id"], image_id, payload.is_featured)
    return image_view(image, store.resolve_read_url(image.body))


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_image(
    image_id: str,
    current_user: dict = Depends(get_current_user),
    service: TransformationService = Depends(get_transformation_service),
):
    service.delete_image(current_user["user_id"], image_id, is_admin=current_user["is_admin"])
    return Response(status_code=status.HTTP_204_NO_CONTENT)
