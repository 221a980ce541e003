"""
Image model: both user-submitted originals and generated results.
Generated records point back at their original through original_id.
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from animeleak.db.base import Base


class GenerationStatus(str, Enum):
    """Lifecycle of an original. Generated records carry no status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed transitions of the generation state machine.
# failed -> pending is the retry edge (automatic or manual).
ALLOWED_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset({GenerationStatus.PROCESSING, GenerationStatus.FAILED}),
    GenerationStatus.PROCESSING: frozenset({GenerationStatus.COMPLETED, GenerationStatus.FAILED}),
    GenerationStatus.FAILED: frozenset({GenerationStatus.PENDING}),
    GenerationStatus.COMPLETED: frozenset(),
}


def sources_for(target: GenerationStatus) -> list[str]:
    """Statuses from which `target` is reachable, as stored values (for conditional UPDATEs)."""
    return [s.value for s, targets in ALLOWED_TRANSITIONS.items() if target in targets]


class Image(Base):
    __tablename__ = "images"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    body = Column(String, nullable=False)  # opaque asset store handle; URLs are resolved at read time
    user_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    is_generated = Column(Boolean, nullable=False, default=False, index=True)
    original_id = Column(String, ForeignKey("images.id"), nullable=True, index=True)

    # Originals only
    generation_status = Column(String, nullable=True, index=True)
    generation_error = Column(Text, nullable=True)
    generation_attempts = Column(Integer, nullable=False, default=0)

    content_type = Column(String, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    size_bytes = Column(Integer, nullable=True)

    # Direct-link sharing (owner controlled)
    sharing_enabled = Column(Boolean, nullable=False, default=True)
    share_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Public gallery
    is_featured = Column(Boolean, nullable=False, default=False)
    featured_at = Column(DateTime(timezone=True), nullable=True, index=True)
    is_disabled_by_admin = Column(Boolean, nullable=False, default=False)
    disabled_by_admin_at = Column(DateTime(timezone=True), nullable=True)
    disabled_by_admin_reason = Column(Text, nullable=True)
