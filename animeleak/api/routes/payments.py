"""
Checkout sessions and the payment provider webhook.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from animeleak.api.deps import get_checkout_service
from animeleak.core.config import settings
from animeleak.db.session import get_db
from animeleak.schemas.payments import CheckoutCreated, CheckoutIn, CheckoutSessionOut
from animeleak.services.auth.jwt import get_current_user
from animeleak.services.payments.checkout import CheckoutService
from animeleak.services.payments.service import PaymentService
from animeleak.services.payments.webhooks import WebhookVerificationError, verify_webhook
from animeleak.utils.metrics import metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/checkout", status_code=status.HTTP_202_ACCEPTED, response_model=CheckoutCreated)
def initiate_checkout(
    payload: CheckoutIn,
    current_user: dict = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    session_id = checkout.initiate_checkout(
        current_user["user_id"],
        success_url=payload.success_url,
        embed_origin=payload.embed_origin,
        customer_email=payload.customer_email,
        customer_name=payload.customer_name,
    )
    return CheckoutCreated(session_id=session_id)


@router.get("/checkout/{session_id}", response_model=CheckoutSessionOut)
def get_checkout(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    session = checkout.get_checkout_session(current_user["user_id"], session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Not found")
    return CheckoutSessionOut(
        id=session.id,
        status=session.status,
        client_secret=session.client_secret,
        checkout_id=session.checkout_id,
        url=session.url,
        error=session.error,
        created_at=session.created_at,
        completed_at=session.completed_at,
    )


@router.post("/webhooks/polar")
async def polar_webhook(request: Request, db: Session = Depends(get_db)):
    """403 on bad signature, 500 when processing fails, 202 otherwise (including replays)."""
    body = await request.body()
    try:
        event = verify_webhook(
            body,
            request.headers,
            settings.polar_webhook_secret,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        )
    except WebhookVerificationError as e:
        metrics.inc_webhook_rejected()
        logger.warning("webhook_rejected", extra={"error": str(e)})
        return JSONResponse(status_code=403, content={"detail": "Invalid signature"})

    try:
        result = PaymentService(db).handle_event(event)
    except Exception:
        logger.exception("webhook_processing_failed", extra={"event_type": event.get("type")})
        return JSONResponse(status_code=500, content={"detail": "Processing failed"})

    return JSONResponse(
        status_code=202,
        content={"received": True, **(result.as_dict() if result else {"granted": 0, "skipped": True})},
    )
