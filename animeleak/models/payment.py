"""
Payment model: one row per external order.
order_id is unique and is the idempotency guard for credit grants.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from animeleak.db.base import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False, default=0)
    credits_granted = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="paid")  # paid / refunded / failed
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
