"""
PaymentService: turns paid orders into credit grants, exactly once per order id.

The Payment row (order_id unique) is the idempotency guard: it is written in
the same transaction as the credit increment, so a replayed or concurrent
delivery of the same order either sees the row and skips, or loses the unique
constraint race and rolls its increment back.
"""
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from animeleak.models.payment import Payment
from animeleak.services.billing.settings_service import BillingSettingsService, BillingSnapshot
from animeleak.services.ledger.service import CreditLedger
from animeleak.utils.metrics import metrics

logger = logging.getLogger(__name__)

PAID_EVENT_TYPES = ("order.paid", "order.updated")


@dataclass(frozen=True)
class GrantResult:
    granted: int
    skipped: bool

    def as_dict(self) -> dict:
        return {"granted": self.granted, "skipped": self.skipped}


class PaymentService:
    def __init__(self, db: Session, billing: BillingSnapshot | None = None):
        self.db = db
        self.billing = billing or BillingSettingsService(db).get_effective()
        self.ledger = CreditLedger(db, self.billing)

    def get_payment(self, order_id: str) -> Payment | None:
        return self.db.query(Payment).filter(Payment.order_id == order_id).one_or_none()

    def process_paid_order(
        self,
        order_id: str,
        user_id: str,
        amount_cents: int,
        quantity: int | None = 1,
        payment_customer_id: str | None = None,
    ) -> GrantResult:
        """Grant credits_per_pack * quantity for a paid order. Idempotent on order_id."""
        if self.get_payment(order_id):
            logger.info("payment_already_processed", extra={"order_id": order_id, "user_id": user_id})
            metrics.inc_payment("skipped")
            return GrantResult(granted=0, skipped=True)

        self.ledger.get_or_create_account(user_id)
        qty = max(1, int(quantity or 1))
        credits = self.billing.credits_per_pack * qty

        try:
            new_balance = self.ledger.grant_credits(user_id, credits, payment_customer_id=payment_customer_id)
            self.db.add(
                Payment(
                    order_id=order_id,
                    user_id=user_id,
                    amount_cents=int(amount_cents or 0),
                    credits_granted=credits,
                    status="paid",
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning("payment_duplicate", extra={"order_id": order_id, "user_id": user_id})
            metrics.inc_payment("skipped")
            return GrantResult(granted=0, skipped=True)
        except Exception:
            self.db.rollback()
            raise

        metrics.inc_payment("granted")
        logger.info(
            "payment_completed",
            extra={"order_id": order_id, "user_id": user_id, "credits": new_balance},
        )
        return GrantResult(granted=credits, skipped=False)

    def handle_event(self, event: dict[str, Any]) -> GrantResult | None:
        """
        Dispatch a verified provider event. Returns None for events that grant
        nothing (other types, unpaid updates, no identity); those are acknowledged.
        """
        event_type = event.get("type")
        if event_type not in PAID_EVENT_TYPES:
            logger.info("webhook_event_ignored", extra={"event_type": event_type})
            return None

        data = event.get("data") or {}
        if event_type == "order.updated" and data.get("status") != "paid":
            logger.info("webhook_order_not_paid", extra={"event_type": event_type, "status": data.get("status")})
            return None

        order_id = data.get("id")
        customer = data.get("customer") or {}
        metadata = data.get("metadata") or {}
        user_id = customer.get("external_id") or metadata.get("userId")
        if not order_id or not user_id:
            logger.warning(
                "webhook_order_missing_identity",
                extra={"event_type": event_type, "order_id": order_id},
            )
            return None

        amount = data.get("total_amount")
        if amount is None:
            amount = data.get("amount") or 0
        return self.process_paid_order(
            order_id=str(order_id),
            user_id=str(user_id),
            amount_cents=amount,
            quantity=metadata.get("quantity") or 1,
            payment_customer_id=data.get("customer_id") or customer.get("id"),
        )
