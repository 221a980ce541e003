from datetime import datetime

from pydantic import BaseModel


class CheckoutIn(BaseModel):
    success_url: str | None = None
    embed_origin: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None


class CheckoutCreated(BaseModel):
    session_id: str


class CheckoutSessionOut(BaseModel):
    id: str
    status: str
    client_secret: str | None = None
    checkout_id: str | None = None
    url: str | None = None
    error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
