"""Billing settings (single row): pack price, credits per pack, refund flag, free trial grant."""
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from animeleak.models.billing_settings import BillingSettings
from animeleak.services.audit.service import AuditService


@dataclass(frozen=True)
class BillingSnapshot:
    """Read-only view passed into ledger / payment / job operations."""

    pack_price_cents: int = 500
    credits_per_pack: int = 420
    refund_on_failure: bool = True
    free_trial_credits: int = 10
    updated_at: datetime | None = None
    updated_by: str | None = None


DEFAULT_BILLING = BillingSnapshot()

EDITABLE_FIELDS = ("pack_price_cents", "credits_per_pack", "refund_on_failure", "free_trial_credits")


class BillingSettingsService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self) -> BillingSettings | None:
        return self.db.query(BillingSettings).filter(BillingSettings.id == 1).first()

    def get_effective(self) -> BillingSnapshot:
        """Row values where present, defaults otherwise. Never writes."""
        row = self.get()
        if row is None:
            return DEFAULT_BILLING
        return BillingSnapshot(
            pack_price_cents=row.pack_price_cents if row.pack_price_cents is not None else DEFAULT_BILLING.pack_price_cents,
            credits_per_pack=row.credits_per_pack if row.credits_per_pack is not None else DEFAULT_BILLING.credits_per_pack,
            refund_on_failure=row.refund_on_failure if row.refund_on_failure is not None else DEFAULT_BILLING.refund_on_failure,
            free_trial_credits=row.free_trial_credits if row.free_trial_credits is not None else DEFAULT_BILLING.free_trial_credits,
            updated_at=row.updated_at,
            updated_by=row.updated_by,
        )

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self.get_effective())
        data["updated_at"] = data["updated_at"].isoformat() if data["updated_at"] else None
        return data

    def update(self, data: dict[str, Any], updated_by: str | None = None) -> dict[str, Any]:
        row = self.get()
        if row is None:
            row = BillingSettings(id=1)
        for key in EDITABLE_FIELDS:
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if key == "refund_on_failure":
                setattr(row, key, bool(value))
                continue
            value = int(value)
            if value < 0:
                raise ValueError(f"{key} must be >= 0")
            setattr(row, key, value)
        row.updated_at = datetime.now(timezone.utc)
        row.updated_by = updated_by
        self.db.add(row)
        AuditService(self.db).log(
            "admin", updated_by, "billing_settings_updated", "billing_settings", "1",
            {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None},
        )
        self.db.commit()
        self.db.refresh(row)
        return self.as_dict()
