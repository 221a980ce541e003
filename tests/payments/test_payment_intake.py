"""PaymentService: exactly-once credit grants per order id and event dispatch."""
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from animeleak.models.payment import Payment
from animeleak.services.billing.settings_service import BillingSnapshot
from animeleak.services.payments.service import PaymentService


def _service(db, credits_per_pack=10, free_trial_credits=0):
    return PaymentService(db, BillingSnapshot(credits_per_pack=credits_per_pack, free_trial_credits=free_trial_credits))


def _order_paid(order_id="ord_1", user_id="u1", **data):
    payload = {
        "id": order_id,
        "status": "paid",
        "total_amount": 500,
        "customer_id": "cus_1",
        "customer": {"id": "cus_1", "external_id": user_id},
        "metadata": {},
    }
    payload.update(data)
    return {"type": "order.paid", "data": payload}


def test_first_delivery_grants_credits(db):
    svc = _service(db)
    result = svc.process_paid_order("ord_1", "u1", 500)

    assert result.as_dict() == {"granted": 10, "skipped": False}
    assert svc.ledger.get_balance("u1") == 10
    payment = svc.get_payment("ord_1")
    assert payment.status == "paid"
    assert payment.credits_granted == 10
    assert payment.amount_cents == 500


def test_replayed_order_is_skipped(db):
    svc = _service(db)
    svc.process_paid_order("ord_1", "u1", 500)
    again = svc.process_paid_order("ord_1", "u1", 500)

    assert again.as_dict() == {"granted": 0, "skipped": True}
    assert svc.ledger.get_balance("u1") == 10
    assert db.query(Payment).filter(Payment.order_id == "ord_1").count() == 1


def test_quantity_multiplies_pack_and_floors_at_one(db):
    svc = _service(db, credits_per_pack=420)
    assert svc.process_paid_order("ord_1", "u1", 1000, quantity=2).granted == 840
    assert svc.process_paid_order("ord_2", "u1", 0, quantity=0).granted == 420
    assert svc.ledger.get_balance("u1") == 1260


def test_grant_adds_to_free_trial_balance(db):
    svc = _service(db, credits_per_pack=10, free_trial_credits=3)
    svc.process_paid_order("ord_1", "u1", 500)
    assert svc.ledger.get_balance("u1") == 13


def test_lost_unique_race_rolls_back_grant(db):
    svc = _service(db)
    svc.ledger.get_or_create_account("u1")

    with patch.object(db, "commit", side_effect=IntegrityError("insert", {}, Exception("unique"))):
        result = svc.process_paid_order("ord_1", "u1", 500)

    assert result.skipped is True
    assert svc.ledger.get_balance("u1") == 0


def test_order_paid_event_uses_external_customer_id(db):
    svc = _service(db)
    result = svc.handle_event(_order_paid(user_id="u42"))

    assert result.granted == 10
    assert svc.ledger.get_balance("u42") == 10
    assert svc.ledger.get_account("u42").payment_customer_id == "cus_1"


def test_identity_falls_back_to_metadata_user_id(db):
    svc = _service(db)
    event = _order_paid(customer={"id": "cus_9"}, metadata={"userId": "u7"})
    assert svc.handle_event(event).granted == 10
    assert svc.ledger.get_balance("u7") == 10


def test_order_updated_only_when_paid(db):
    svc = _service(db)
    pending = {"type": "order.updated", "data": {**_order_paid()["data"], "status": "pending"}}
    assert svc.handle_event(pending) is None

    paid = {"type": "order.updated", "data": _order_paid()["data"]}
    assert svc.handle_event(paid).granted == 10


def test_paid_and_updated_for_same_order_grant_once(db):
    svc = _service(db)
    svc.handle_event(_order_paid())
    result = svc.handle_event({"type": "order.updated", "data": _order_paid()["data"]})
    assert result.skipped is True
    assert svc.ledger.get_balance("u1") == 10


def test_other_events_and_missing_identity_are_ignored(db):
    svc = _service(db)
    assert svc.handle_event({"type": "checkout.created", "data": {"id": "x"}}) is None
    assert svc.handle_event(_order_paid(customer={}, metadata={})) is None
    assert db.query(Payment).count() == 0
