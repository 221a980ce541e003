"""
Celery task: create the provider checkout for a pending checkout session.
"""
import logging

from sqlalchemy.orm import Session

from animeleak.core.celery_app import celery_app
from animeleak.db.session import SessionLocal
from animeleak.services.payments.checkout import CheckoutService

logger = logging.getLogger(__name__)


@celery_app.task(name="animeleak.workers.tasks.process_checkout.process_checkout", max_retries=0)
def process_checkout(
    session_id: str,
    success_url: str | None = None,
    embed_origin: str | None = None,
    customer_email: str | None = None,
    customer_name: str | None = None,
) -> dict:
    db: Session = SessionLocal()
    try:
        status = CheckoutService(db).process_checkout(
            session_id,
            success_url=success_url,
            embed_origin=embed_origin,
            customer_email=customer_email,
            customer_name=customer_name,
        )
        return {"ok": status == "completed", "status": status}
    except Exception as e:
        logger.exception("checkout_task_crashed", extra={"session_id": session_id})
        return {"ok": False, "error": str(e)}
    finally:
        db.close()
