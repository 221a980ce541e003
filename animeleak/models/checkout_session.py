from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text

from animeleak.db.base import Base


class CheckoutSession(Base):
    """In-flight checkout creation: pending -> completed | failed, finalized once."""

    __tablename__ = "checkout_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    client_secret = Column(String, nullable=True)
    checkout_id = Column(String, nullable=True)
    url = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)
