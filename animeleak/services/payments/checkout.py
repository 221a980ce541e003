"""
Checkout sessions: a pending row is created synchronously, a worker calls the
payment provider and finalizes it (completed with client secret/url, or failed)
exactly once.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
from sqlalchemy import update
from sqlalchemy.orm import Session

from animeleak.core.config import settings
from animeleak.models.checkout_session import CheckoutSession

logger = logging.getLogger(__name__)

PROCESS_CHECKOUT_TASK = "animeleak.workers.tasks.process_checkout.process_checkout"
MISSING_CONFIG_ERROR = "Payment configuration missing: access token and product id are required"


def _send_checkout_task(session_id: str, options: dict[str, Any]) -> None:
    from animeleak.core.celery_app import celery_app

    celery_app.send_task(PROCESS_CHECKOUT_TASK, args=[session_id], kwargs=options)


class CheckoutService:
    def __init__(
        self,
        db: Session,
        dispatch: Callable[[str, dict[str, Any]], None] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.db = db
        self.dispatch = dispatch or _send_checkout_task
        self.transport = transport

    def initiate_checkout(
        self,
        user_id: str,
        success_url: str | None = None,
        embed_origin: str | None = None,
        customer_email: str | None = None,
        customer_name: str | None = None,
    ) -> str:
        session = CheckoutSession(user_id=user_id, status="pending")
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        options = {
            "success_url": success_url,
            "embed_origin": embed_origin,
            "customer_email": customer_email,
            "customer_name": customer_name,
        }
        self.dispatch(session.id, options)
        logger.info("checkout_initiated", extra={"session_id": session.id, "user_id": user_id})
        return session.id

    def get_checkout_session(self, user_id: str, session_id: str) -> CheckoutSession | None:
        session = self.db.get(CheckoutSession, session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def _finalize(self, session_id: str, status: str, **values) -> bool:
        result = self.db.execute(
            update(CheckoutSession)
            .where(CheckoutSession.id == session_id, CheckoutSession.status == "pending")
            .values(status=status, completed_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount > 0

    def _create_provider_checkout(self, user_id: str, options: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "products": [settings.polar_product_id],
            "external_customer_id": user_id,
            "metadata": {"userId": user_id, "app": "animeleak"},
        }
        for key in ("success_url", "embed_origin", "customer_email", "customer_name"):
            if options.get(key):
                body[key] = options[key]
        with httpx.Client(
            base_url=settings.polar_api_base,
            timeout=settings.http_client_timeout,
            transport=self.transport,
        ) as client:
            resp = client.post(
                "/v1/checkouts/",
                json=body,
                headers={"Authorization": f"Bearer {settings.polar_access_token}"},
            )
            resp.raise_for_status()
            return resp.json()

    def process_checkout(self, session_id: str, **options) -> str | None:
        """Background step. Returns the final status, or None when there was nothing to do."""
        session = self.db.get(CheckoutSession, session_id)
        if session is None:
            logger.error("checkout_session_not_found", extra={"session_id": session_id})
            return None
        if session.status != "pending":
            logger.warning("checkout_session_already_processed", extra={"session_id": session_id})
            return None

        if not settings.polar_access_token or not settings.polar_product_id:
            self._finalize(session_id, "failed", error=MISSING_CONFIG_ERROR)
            logger.error("checkout_not_configured", extra={"session_id": session_id})
            return "failed"

        try:
            checkout = self._create_provider_checkout(session.user_id, options)
        except (httpx.HTTPError, ValueError) as e:
            error = f"Checkout creation failed: {e}"
            self._finalize(session_id, "failed", error=error[:2000])
            logger.warning("checkout_failed", extra={"session_id": session_id, "error": str(e)})
            return "failed"

        self._finalize(
            session_id,
            "completed",
            client_secret=checkout.get("client_secret"),
            checkout_id=checkout.get("id"),
            url=checkout.get("url"),
        )
        logger.info("checkout_completed", extra={"session_id": session_id, "user_id": session.user_id})
        return "completed"
