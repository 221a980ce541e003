"""
Unauthenticated reads: the featured gallery and direct share links.
Hidden items are simply absent (gallery) or 404 (share).
"""
from fastapi import APIRouter, Depends, HTTPException, Query

from animeleak.api.deps import get_visibility_service
from animeleak.schemas.images import PublicImageOut, PublicPageOut
from animeleak.visibility.service import VisibilityService

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/gallery", response_model=PublicPageOut)
def public_gallery(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    visibility: VisibilityService = Depends(get_visibility_service),
):
    return visibility.get_public_gallery(cursor, limit)


@router.get("/share/{image_id}", response_model=PublicImageOut)
def shared_image(image_id: str, visibility: VisibilityService = Depends(get_visibility_service)):
    image = visibility.get_shared_image(image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Not found")
    return image
