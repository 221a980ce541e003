"""
CreditLedger: integer credit balance per account.

Every mutation is a single conditional UPDATE on one accounts row, never a
read-modify-write across round trips. Mutating methods flush but do not
commit: the caller owns the transaction so a debit can commit together with
the record it pays for.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from animeleak.models.account import Account
from animeleak.services.billing.settings_service import BillingSettingsService, BillingSnapshot
from animeleak.services.errors import InsufficientCredits
from animeleak.utils.metrics import metrics

logger = logging.getLogger(__name__)

FREE_TRIAL_DAYS = 7


class CreditLedger:
    def __init__(self, db: Session, billing: BillingSnapshot | None = None):
        self.db = db
        self.billing = billing or BillingSettingsService(db).get_effective()

    def get_account(self, user_id: str) -> Account | None:
        return self.db.query(Account).filter(Account.user_id == user_id).one_or_none()

    def get_or_create_account(self, user_id: str) -> Account:
        """
        Existing account, or a new one seeded with the free-trial grant.
        Concurrent first calls for the same identity converge on one row: the
        loser of the unique-constraint race re-reads the winner's account.
        """
        account = self.get_account(user_id)
        if account:
            return account
        account = Account(user_id=user_id, credits=max(0, self.billing.free_trial_credits))
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_account(user_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(account)
        logger.info("account_created", extra={"user_id": user_id, "credits": account.credits})
        return account

    def get_balance(self, user_id: str) -> int | None:
        return self.db.execute(select(Account.credits).where(Account.user_id == user_id)).scalar_one_or_none()

    def try_debit(self, user_id: str, amount: int = 1) -> bool:
        """Atomic check-and-decrement. False (and no change) when the balance is short."""
        if amount <= 0:
            raise ValueError("debit amount must be positive")
        result = self.db.execute(
            update(Account)
            .where(Account.user_id == user_id, Account.credits >= amount)
            .values(credits=Account.credits - amount, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount > 0

    def reserve_credit(self, user_id: str) -> None:
        """Take one credit or raise InsufficientCredits. Commit is the caller's."""
        if not self.try_debit(user_id, 1):
            metrics.inc_balance_rejected()
            raise InsufficientCredits(credits=self.get_balance(user_id) or 0)
        metrics.inc_credit_operation("reserve")

    def grant_credits(self, user_id: str, amount: int, payment_customer_id: str | None = None) -> int:
        """Atomic increment; returns the new balance."""
        new_balance = self._increment(user_id, amount, payment_customer_id)
        metrics.inc_credit_operation("grant")
        return new_balance

    def _increment(self, user_id: str, amount: int, payment_customer_id: str | None = None) -> int:
        if amount <= 0:
            raise ValueError("grant amount must be positive")
        result = self.db.execute(
            update(Account)
            .where(Account.user_id == user_id)
            .values(credits=Account.credits + amount, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise LookupError(f"account not found: {user_id}")
        if payment_customer_id:
            self.db.execute(
                update(Account)
                .where(Account.user_id == user_id, Account.payment_customer_id.is_(None))
                .values(payment_customer_id=payment_customer_id)
                .execution_options(synchronize_session=False)
            )
        self.db.flush()
        return self.get_balance(user_id) or 0

    def refund(
        self,
        user_id: str,
        amount: int = 1,
        reason: str | None = None,
        image_id: str | None = None,
    ) -> tuple[bool, int]:
        """
        Give credits back after a failed generation, only when refunds are enabled.
        Returns (refunded, balance). Increment only, so the balance can never go negative.
        """
        if not self.billing.refund_on_failure:
            return False, self.get_balance(user_id) or 0
        if self.get_balance(user_id) is None:
            logger.warning("refund_account_missing", extra={"user_id": user_id, "image_id": image_id})
            return False, 0
        new_balance = self._increment(user_id, amount)
        metrics.inc_refund()
        logger.info(
            "credits_refunded",
            extra={
                "user_id": user_id,
                "image_id": image_id,
                "credits": new_balance,
                "error": reason or "generation failure",
            },
        )
        return True, new_balance

    def get_credit_summary(self, user_id: str) -> dict:
        """Balance for display. Unknown identities are not created here."""
        account = self.get_account(user_id)
        if account is None:
            return {"credits": 0, "has_free_trial": True}
        created_at = account.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        has_free_trial = created_at > datetime.now(timezone.utc) - timedelta(days=FREE_TRIAL_DAYS)
        return {"credits": account.credits, "has_free_trial": has_free_trial}
