"""Audit trail for admin actions: gallery moderation and billing changes."""
from typing import Any

from sqlalchemy.orm import Session

from animeleak.models.audit_log import AuditLog


class AuditService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def log(
        self,
        actor_type: str,
        actor_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Stage an entry in the caller's transaction; it commits with the change it records."""
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=dict(payload or {}),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def entries_for(self, entity_type: str, entity_id: str) -> list[AuditLog]:
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at)
            .all()
        )
