from datetime import datetime

from pydantic import BaseModel, Field


class ImageOut(BaseModel):
    id: str
    url: str | None
    created_at: datetime
    is_generated: bool
    original_id: str | None = None
    generation_status: str | None = None
    generation_error: str | None = None
    generation_attempts: int = 0
    content_type: str | None = None
    width: int | None = None
    height: int | None = None
    sharing_enabled: bool = True
    share_expires_at: datetime | None = None
    is_featured: bool = False
    featured_at: datetime | None = None
    is_disabled_by_admin: bool = False


class ImagePageOut(BaseModel):
    page: list[ImageOut]
    is_done: bool
    continue_cursor: str | None


class UploadAccepted(BaseModel):
    storage_id: str
    original_image_id: str


class CountOut(BaseModel):
    count: int


class ActiveOut(BaseModel):
    active: bool


class ShareSettingsIn(BaseModel):
    sharing_enabled: bool
    expiration_hours: int | None = Field(default=None, ge=0, description="0 or null: never expires")


class FeaturedIn(BaseModel):
    is_featured: bool


class PublicImageOut(BaseModel):
    id: str
    url: str
    created_at: datetime
    is_featured: bool


class PublicPageOut(BaseModel):
    page: list[PublicImageOut]
    is_done: bool
    continue_cursor: str | None
