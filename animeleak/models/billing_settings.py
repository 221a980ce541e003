from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from animeleak.db.base import Base


class BillingSettings(Base):
    """Billing settings (single row, id=1). Null columns fall back to defaults."""

    __tablename__ = "billing_settings"

    id = Column(Integer, primary_key=True, default=1)
    pack_price_cents = Column(Integer, nullable=True)
    credits_per_pack = Column(Integer, nullable=True)
    refund_on_failure = Column(Boolean, nullable=True)
    free_trial_credits = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_by = Column(String, nullable=True)
