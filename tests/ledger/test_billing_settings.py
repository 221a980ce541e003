import pytest

from animeleak.models.audit_log import AuditLog
from animeleak.services.billing.settings_service import DEFAULT_BILLING, BillingSettingsService


def test_defaults_when_row_missing(db):
    snapshot = BillingSettingsService(db).get_effective()
    assert snapshot == DEFAULT_BILLING
    assert snapshot.credits_per_pack == 420
    assert snapshot.refund_on_failure is True
    assert snapshot.free_trial_credits == 10


def test_update_persists_and_audits(db):
    svc = BillingSettingsService(db)
    data = svc.update({"credits_per_pack": 10, "refund_on_failure": False}, updated_by="admin-1")
    assert data["credits_per_pack"] == 10
    assert data["refund_on_failure"] is False
    assert data["pack_price_cents"] == 500
    assert data["updated_by"] == "admin-1"

    snapshot = BillingSettingsService(db).get_effective()
    assert snapshot.credits_per_pack == 10
    assert snapshot.refund_on_failure is False

    entry = db.query(AuditLog).filter(AuditLog.action == "billing_settings_updated").one()
    assert entry.actor_id == "admin-1"


def test_update_rejects_negative_values(db):
    with pytest.raises(ValueError):
        BillingSettingsService(db).update({"free_trial_credits": -1})
