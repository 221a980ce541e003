"""
Webhook signature verification (Standard Webhooks, as sent by Polar).

    signed content = "{webhook-id}.{webhook-timestamp}.{raw body}"
    signature      = base64(HMAC-SHA256(secret, signed content))
    header         = "webhook-signature: v1,<sig> [v1,<sig> ...]"

A `whsec_` prefixed secret carries base64 key bytes; any other secret is used
as its raw utf-8 bytes.
"""
import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Mapping


class WebhookVerificationError(Exception):
    pass


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        try:
            return base64.b64decode(secret[len("whsec_"):])
        except (binascii.Error, ValueError) as e:
            raise WebhookVerificationError("Malformed webhook secret") from e
    return secret.encode("utf-8")


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value


def sign_payload(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Signature value (without the v1, prefix) for a payload."""
    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(_secret_bytes(secret), signed, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook(
    body: bytes,
    headers: Mapping[str, str],
    secret: str,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> dict[str, Any]:
    """
    Verify signature and freshness, then return the parsed event.
    Raises WebhookVerificationError on any problem; nothing is processed in that case.
    """
    if not secret:
        raise WebhookVerificationError("Webhook secret not configured")

    msg_id = _header(headers, "webhook-id")
    timestamp = _header(headers, "webhook-timestamp")
    signature_header = _header(headers, "webhook-signature")
    if not msg_id or not timestamp or not signature_header:
        raise WebhookVerificationError("Missing webhook headers")

    try:
        ts = int(timestamp)
    except ValueError as e:
        raise WebhookVerificationError("Invalid webhook timestamp") from e
    current = time.time() if now is None else now
    if abs(current - ts) > tolerance_seconds:
        raise WebhookVerificationError("Webhook timestamp outside tolerance")

    expected = sign_payload(secret, msg_id, timestamp, body)
    for candidate in signature_header.split():
        version, _, sig = candidate.partition(",")
        if version != "v1" or not sig:
            continue
        if hmac.compare_digest(sig.encode("ascii", "ignore"), expected.encode("ascii")):
            break
    else:
        raise WebhookVerificationError("No matching webhook signature")

    try:
        event = json.loads(body)
    except ValueError as e:
        raise WebhookVerificationError("Webhook body is not valid JSON") from e
    if not isinstance(event, dict):
        raise WebhookVerificationError("Webhook body is not an object")
    return event
