"""
The two visibility predicates. Evaluated at read time from the record's own
booleans and timestamps; nothing derived from them is ever stored.
"""
from datetime import datetime, timezone


def _aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_publicly_listable(record) -> bool:
    """Featured and not taken down by moderation."""
    return bool(record.is_featured) and not bool(record.is_disabled_by_admin)


def is_share_resolvable(record, now: datetime | None = None) -> bool:
    """Owner has not turned sharing off and the share has not expired. Moderation does not apply."""
    if record.sharing_enabled is False:
        return False
    expires_at = _aware(record.share_expires_at)
    if expires_at is None:
        return True
    return expires_at > (_aware(now) or datetime.now(timezone.utc))
