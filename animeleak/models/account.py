from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from animeleak.db.base import Base


class Account(Base):
    """One per end user; created lazily on first authenticated action."""

    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, unique=True, nullable=False, index=True)  # external identity (JWT sub)
    credits = Column(Integer, nullable=False, default=0)
    payment_customer_id = Column(String, nullable=True)  # Polar customer, set on first paid order
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
