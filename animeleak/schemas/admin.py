"""
Admin API schemas: moderation and billing settings.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class DisableImageIn(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class AdminFeaturedImageOut(BaseModel):
    id: str
    url: str
    created_at: datetime
    is_featured: bool
    user_id: str | None = None
    is_disabled_by_admin: bool = False
    disabled_by_admin_reason: str | None = None


class AdminFeaturedPageOut(BaseModel):
    page: list[AdminFeaturedImageOut]
    is_done: bool
    continue_cursor: str | None


class BillingSettingsOut(BaseModel):
    pack_price_cents: int
    credits_per_pack: int
    refund_on_failure: bool
    free_trial_credits: int
    updated_at: datetime | None = None
    updated_by: str | None = None


class BillingSettingsUpdate(BaseModel):
    pack_price_cents: int | None = Field(default=None, ge=0)
    credits_per_pack: int | None = Field(default=None, ge=0)
    refund_on_failure: bool | None = None
    free_trial_credits: int | None = Field(default=None, ge=0)
